"""Tests for documents app models."""

import pytest

from server.apps.documents.exceptions import ImmutableFieldError
from server.apps.documents.models import FileCategory, FileRecord


@pytest.fixture
def file_record(owner_id):
    """Create a stored file record.

    Returns:
        FileRecord instance.
    """
    return FileRecord.objects.create(
        owner_id=owner_id,
        name='Payslip March.PDF',
        mime_type='application/pdf',
        size_bytes=2048,
        storage_key=f'{owner_id}/1710000000000_Payslip_March.PDF',
        category=FileCategory.DOCUMENT,
    )


@pytest.mark.django_db
class TestFileRecord:
    """Tests for FileRecord model."""

    def test_str_representation(self, file_record, owner_id):
        """Test string representation."""
        assert str(file_record) == f'{owner_id}:Payslip March.PDF'

    def test_defaults(self, file_record):
        """Test defaults of optional columns."""
        assert file_record.description is None
        assert file_record.processed is False
        assert file_record.uploaded_at is not None

    def test_get_extension(self, file_record):
        """Test extension extraction is lowercase and dot-free."""
        assert file_record.get_extension() == 'pdf'

    def test_get_extension_without_dot(self, owner_id):
        """Test names without an extension."""
        record = FileRecord(owner_id=owner_id, name='README')

        assert record.get_extension() == ''

    def test_description_is_editable(self, file_record):
        """Test mutable columns can be saved."""
        file_record.description = 'Employer payslip'
        file_record.save()

        file_record.refresh_from_db()
        assert file_record.description == 'Employer payslip'

    def test_loaded_record_name_is_editable(self, file_record):
        """Test mutable columns can be saved after a fresh load."""
        loaded = FileRecord.objects.get(id=file_record.id)
        loaded.name = 'Payslip.pdf'
        loaded.save()

        assert FileRecord.objects.get(id=file_record.id).name == 'Payslip.pdf'

    @pytest.mark.parametrize(('field', 'new_value'), [
        ('owner_id', 'owner-other'),
        ('size_bytes', 1),
        ('storage_key', 'owner-other/1_x.pdf'),
        ('category', FileCategory.IMAGE),
    ])
    def test_immutable_fields_rejected(self, file_record, field, new_value):
        """Test write-once columns cannot be changed."""
        loaded = FileRecord.objects.get(id=file_record.id)
        setattr(loaded, field, new_value)

        with pytest.raises(ImmutableFieldError, match=field):
            loaded.save()

        assert getattr(FileRecord.objects.get(id=file_record.id), field) == (
            getattr(file_record, field)
        )

    def test_immutable_check_after_create(self, file_record):
        """Test records fresh from create are guarded as well."""
        file_record.size_bytes = 1

        with pytest.raises(ImmutableFieldError):
            file_record.save()
