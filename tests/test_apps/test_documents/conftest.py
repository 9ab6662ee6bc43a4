"""Shared fixtures for documents app tests."""

from io import BytesIO

import boto3
import pytest
from django.conf import settings as django_settings
from moto import mock_aws

from server.apps.documents.infrastructure.storage import get_blob_storage
from server.apps.documents.logic.progress import ProgressRecorder
from server.apps.documents.logic.upload_pipeline import CandidateFile


@pytest.fixture
def owner_id():
    """Principal ID of the test owner.

    Returns:
        Owner ID string.
    """
    return 'owner-7f3a'


@pytest.fixture
def other_owner_id():
    """Principal ID of a second owner for isolation tests.

    Returns:
        Owner ID string.
    """
    return 'owner-b21c'


@pytest.fixture
def bucket_name():
    """Name of the bucket configured for the default storage.

    Returns:
        Bucket name from settings.
    """
    return django_settings.STORAGES['default']['OPTIONS']['bucket_name']


@pytest.fixture
def mock_s3(bucket_name):
    """Mock S3 service with the documents bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=bucket_name)

        yield conn


@pytest.fixture
def bucket_keys(mock_s3, bucket_name):
    """Callable listing every key currently in the mocked bucket.

    Returns:
        Function returning a sorted list of keys.
    """
    def keys():
        bucket = mock_s3.Bucket(bucket_name)
        return sorted(obj.key for obj in bucket.objects.all())
    return keys


@pytest.fixture
def storage(mock_s3):
    """Configured blob storage, backed by the mocked bucket.

    Returns:
        BlobStorage instance.
    """
    return get_blob_storage()


@pytest.fixture(autouse=True)
def sequential_uploads(settings):
    """Keep batch uploads on the test thread and its DB transaction."""
    settings.DOCUMENTS_UPLOAD_PARALLELISM = 1


@pytest.fixture
def make_candidate():
    """Factory for in-memory candidate files.

    Returns:
        Function building a CandidateFile.
    """
    def factory(
        name='statement.pdf',
        mime_type='application/pdf',
        content=b'%PDF-1.7 test statement',
        size_bytes=None,
    ):
        return CandidateFile(
            name=name,
            mime_type=mime_type,
            size_bytes=len(content) if size_bytes is None else size_bytes,
            content=BytesIO(content),
        )
    return factory


@pytest.fixture
def progress():
    """Record every upload progress event published during the test.

    Yields:
        Active ProgressRecorder.
    """
    with ProgressRecorder() as recorder:
        yield recorder
