import pytest

from apps.progress.models import ProgressUpdate


pytestmark = pytest.mark.django_db


@pytest.fixture
def posted(api_client, assigned_job, contractor):
    api_client.force_authenticate(contractor)
    response = api_client.post('/progress/', {
        'job_id': assigned_job.pk,
        'type': 'daily',
        'description': 'Conduits laid in two rooms',
        'progress_percentage': 40,
        'work_done': [{'task': 'Lay conduits', 'status': 'completed'}],
        'issues': [{'description': 'Cracked slab', 'severity': 'critical'}],
        'weather': {'condition': 'Sunny', 'impact': 'none'},
    }, format='json')
    assert response.status_code == 201
    return response.data


def test_create_fills_nested_defaults(posted, assigned_job):
    update = ProgressUpdate.objects.get(pk=posted['id'])
    assert update.project_id == assigned_job.project_id
    assert update.issues[0]['resolved'] is False
    assert update.work_done[0]['notes'] == ''
    assert posted['unresolved_issues_count'] == 1


def test_create_validates_nested_items(api_client, assigned_job, contractor):
    api_client.force_authenticate(contractor)
    response = api_client.post('/progress/', {
        'job_id': assigned_job.pk,
        'description': 'x',
        'issues': [{'description': 'Leak', 'severity': 'apocalyptic'}],
    }, format='json')
    assert response.status_code == 400
    assert 'issues' in response.data


def test_unassigned_contractor_gets_403(api_client, assigned_job, other_contractor):
    api_client.force_authenticate(other_contractor)
    response = api_client.post('/progress/', {'job_id': assigned_job.pk, 'description': 'x'}, format='json')
    assert response.status_code == 403
    assert response.data['code'] == 'not_assignee'


def test_customer_acknowledges_twice(api_client, posted, customer):
    api_client.force_authenticate(customer)
    first = api_client.post(f"/progress/{posted['id']}/acknowledge/")
    second = api_client.post(f"/progress/{posted['id']}/acknowledge/")

    assert first.status_code == second.status_code == 200
    assert second.data['customer_acknowledged'] is True
    assert second.data['acknowledged_at'] == first.data['acknowledged_at']


def test_comment_and_resolve(api_client, posted, customer, contractor):
    api_client.force_authenticate(customer)
    comment = api_client.post(f"/progress/{posted['id']}/comment/", {'text': 'Please photograph it'},
                              format='json')
    assert comment.status_code == 201

    api_client.force_authenticate(contractor)
    resolved = api_client.post(f"/progress/{posted['id']}/issues/0/resolve/", {'resolution': 'Patched'},
                               format='json')
    assert resolved.status_code == 200
    assert resolved.data['unresolved_issues_count'] == 0
    assert len(resolved.data['comments']) == 1

    missing = api_client.post(f"/progress/{posted['id']}/issues/5/resolve/", format='json')
    assert missing.status_code == 404
    assert missing.data['code'] == 'issue_not_found'


def test_project_listing_includes_summary(api_client, posted, customer, assigned_job):
    api_client.force_authenticate(customer)
    response = api_client.get(f'/progress/project/{assigned_job.project_id}/')

    assert response.status_code == 200
    assert response.data['count'] == 1
    assert response.data['summary']['unresolved_issues'] == 1


def test_edit_and_delete(api_client, posted, contractor):
    api_client.force_authenticate(contractor)
    edited = api_client.patch(f"/progress/{posted['id']}/", {'progress_percentage': 60}, format='json')
    assert edited.status_code == 200
    assert edited.data['progress_percentage'] == 60

    assert api_client.delete(f"/progress/{posted['id']}/").status_code == 200
    assert api_client.get(f"/progress/{posted['id']}/").status_code == 404


def test_my_updates(api_client, posted, contractor):
    api_client.force_authenticate(contractor)
    response = api_client.get('/progress/my-updates/')
    assert [u['id'] for u in response.data['results']] == [posted['id']]
