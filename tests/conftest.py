"""Shared fixtures for the test suite."""
import itertools
from datetime import date

import boto3
import pytest
import responses
from moto import mock_aws

from processor.models import DateWindow
from scraper.fetcher import PageFetcher

TABLE_PREFIX = 'test-wayland'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real AWS credentials and regions."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


def create_tables(dynamodb, prefix: str = TABLE_PREFIX):
    """Create the five tables used by DynamoDBGateway."""
    for suffix, key, key_type in (
        ('events', 'event_key', 'S'),
        ('sources', 'id', 'S'),
        ('import-jobs', 'id', 'N'),
        ('schedules', 'id', 'S'),
        ('counters', 'name', 'S'),
    ):
        dynamodb.create_table(
            TableName=f"{prefix}-{suffix}",
            KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': key, 'AttributeType': key_type}],
            BillingMode='PAY_PER_REQUEST',
        )


@pytest.fixture
def dynamodb():
    """Mocked DynamoDB resource with every table created."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        create_tables(resource)
        yield resource


@pytest.fixture
def mocked_responses():
    """HTTP mock that fails any request not explicitly registered."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def fetcher():
    """Page fetcher without the politeness delay."""
    return PageFetcher(timeout=5, delay=0)


@pytest.fixture
def august_window():
    return DateWindow(start=date(2025, 8, 1), end=date(2025, 8, 31))


@pytest.fixture
def clock():
    """Deterministic clock returning increasing timestamps."""
    ticks = itertools.count()

    def now():
        tick = next(ticks)
        return f"2025-08-01T{12 + tick // 3600:02d}:{tick // 60 % 60:02d}:{tick % 60:02d}Z"

    return now
