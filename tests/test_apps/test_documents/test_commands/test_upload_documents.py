"""Tests for upload_documents management command."""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from server.apps.documents.logic.registry import list_files


def _run(*args):
    stdout = StringIO()
    stderr = StringIO()
    call_command('upload_documents', *args, stdout=stdout, stderr=stderr)
    return stdout.getvalue(), stderr.getvalue()


@pytest.mark.django_db
class TestUploadDocumentsCommand:
    """Tests for upload_documents command."""

    def test_uploads_files(self, owner_id, mock_s3, tmp_path, bucket_keys):
        """Test files are stored and summarized."""
        statement = tmp_path / 'statement.pdf'
        statement.write_bytes(b'%PDF-1.7 statement')
        budget = tmp_path / 'budget.csv'
        budget.write_text('month,amount\njan,100\n')

        stdout, stderr = _run(
            owner_id,
            str(statement),
            str(budget),
            '--description',
            'Bank statement',
        )

        records = {record.name: record for record in list_files(owner_id)}
        assert set(records) == {'statement.pdf', 'budget.csv'}
        assert records['statement.pdf'].description == 'Bank statement'
        assert records['budget.csv'].description is None
        assert len(bucket_keys()) == 2
        assert 'statement.pdf: completed 100%' in stdout
        assert 'Uploaded 2 files, 0 failed' in stdout
        assert not stderr

    def test_reports_rejected_file(self, owner_id, mock_s3, tmp_path):
        """Test unsupported files are reported and skipped."""
        good = tmp_path / 'notes.txt'
        good.write_text('remember the pension letter')
        bad = tmp_path / 'archive.xyz'
        bad.write_bytes(b'\x00\x01')

        stdout, stderr = _run(owner_id, str(good), str(bad))

        assert [record.name for record in list_files(owner_id)] == [
            'notes.txt',
        ]
        assert 'archive.xyz: error' in stderr
        assert 'Uploaded 1 files, 1 failed' in stdout

    def test_missing_path(self, owner_id, tmp_path):
        """Test nonexistent paths fail before anything is uploaded."""
        missing = tmp_path / 'missing.pdf'

        with pytest.raises(CommandError, match='Not a file'):
            _run(owner_id, str(missing))

        assert list_files(owner_id) == []
