import pytest
from fastapi.testclient import TestClient

from jobscraper.linkedin.db import JobDB
from jobscraper.linkedin.models import JobRecord
from jobscraper.web.server import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    db_path = tmp_path / 'jobs.sqlite'
    db = JobDB(db_path)
    db.upsert_jobs([
        JobRecord(id='1', title='Python Engineer', link='https://www.linkedin.com/jobs/view/1/',
                  company='Acme', location='Berlin', remote='Hybrid', skills_required=['Python']),
        JobRecord(id='2', title='Data Analyst', link='https://www.linkedin.com/jobs/view/2/',
                  company='Globex', location='Paris', remote='Remote'),
    ])
    monkeypatch.setenv('JOBSCRAPER_DB', str(db_path))
    return TestClient(app)


def test_health(client):
    assert client.get('/health').json() == {'status': 'ok'}


def test_list_and_filter(client):
    body = client.get('/api/jobs').json()
    assert body['total'] == 2 and len(body['items']) == 2
    body = client.get('/api/jobs', params={'company': 'glob'}).json()
    assert [j['id'] for j in body['items']] == ['2']
    body = client.get('/api/jobs', params={'limit': 1, 'offset': 1}).json()
    assert body['total'] == 2 and len(body['items']) == 1


def test_limit_is_bounded(client):
    assert client.get('/api/jobs', params={'limit': 0}).status_code == 422
    assert client.get('/api/jobs', params={'limit': 500}).status_code == 422


def test_job_detail_and_missing(client):
    job = client.get('/api/jobs/1').json()
    assert job['skills_required'] == ['Python']
    assert client.get('/api/jobs/999').status_code == 404


def test_csv_export(client):
    resp = client.get('/api/jobs.csv')
    assert resp.status_code == 200
    assert resp.headers['content-type'].startswith('text/csv')
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith('id,title,link')
    assert len(lines) == 3
