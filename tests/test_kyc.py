import io

import pytest

from app.models.listing import ListingStatus
from app.models.notification import Notification
from app.models.user import KYCStatus
from app.services import kyc_service
from app.utils.errors import ValidationError


def _document(name='passport.pdf'):
    return {'document': (io.BytesIO(b'%PDF-1.4 test'), name)}


def test_submit_document(client, make_user, admin, auth_headers):
    user = make_user()

    response = client.post('/api/verification/submit', data=_document(), content_type='multipart/form-data',
                           headers=auth_headers(user))

    assert response.status_code == 200
    body = response.get_json()['user']
    assert body['kyc_status'] == 'pending'
    assert body['kyc_document_url'].endswith('.pdf')
    assert '/kyc/' in body['kyc_document_url']
    assert Notification.query.filter_by(user_id=admin.id, title='KYC Submission').count() == 1


def test_submit_rejects_bad_files(client, make_user, auth_headers):
    user = make_user()

    missing = client.post('/api/verification/submit', data={}, content_type='multipart/form-data',
                          headers=auth_headers(user))
    wrong_type = client.post('/api/verification/submit', data=_document('notes.txt'),
                             content_type='multipart/form-data', headers=auth_headers(user))

    assert missing.status_code == 400
    assert wrong_type.status_code == 400
    assert user.kyc_status == KYCStatus.NONE


def test_verified_users_cannot_resubmit(client, host, auth_headers):
    response = client.post('/api/verification/submit', data=_document(), content_type='multipart/form-data',
                           headers=auth_headers(host))

    assert response.status_code == 400


def test_verifying_a_host_submits_waiting_listings(make_user, make_listing, admin):
    new_host = make_user(host=True, kyc=KYCStatus.PENDING)
    waiting = make_listing(owner=new_host, status=ListingStatus.PENDING_KYC)
    draft = make_listing(owner=new_host, status=ListingStatus.DRAFT)

    kyc_service.update_kyc(new_host, 'verified', reviewer=admin)

    assert new_host.kyc_verified
    assert new_host.kyc_reviewed_by_id == admin.id
    assert waiting.status == ListingStatus.PENDING_APPROVAL
    assert draft.status == ListingStatus.DRAFT
    notice = Notification.query.filter_by(user_id=new_host.id, title='Identity Verified').one()
    assert notice.meta == {'listings_submitted': 1}


def test_update_kyc_rejects_other_statuses(make_user):
    user = make_user(kyc=KYCStatus.PENDING)

    with pytest.raises(ValidationError):
        kyc_service.update_kyc(user, 'pending')
    with pytest.raises(ValidationError):
        kyc_service.update_kyc(user, 'maybe')


def test_decision_routes(client, make_user, admin, auth_headers):
    first = make_user(kyc=KYCStatus.PENDING)
    second = make_user(kyc=KYCStatus.PENDING)

    pending = client.get('/api/verification/pending', headers=auth_headers(admin)).get_json()
    assert pending['total'] == 2
    assert client.get('/api/verification/pending', headers=auth_headers(first)).status_code == 403

    no_reason = client.post(f'/api/verification/{second.id}/decision', json={'status': 'rejected'},
                            headers=auth_headers(admin))
    assert no_reason.status_code == 400

    rejected = client.post(f'/api/verification/{second.id}/decision',
                           json={'status': 'rejected', 'notes': 'Document is blurry'},
                           headers=auth_headers(admin))
    assert rejected.get_json()['user']['kyc_status'] == 'rejected'

    verified = client.post(f'/api/verification/{first.id}/decision', json={'status': 'verified'},
                           headers=auth_headers(admin))
    assert verified.status_code == 200
    assert first.kyc_status == KYCStatus.VERIFIED

    again = client.post(f'/api/verification/{first.id}/decision', json={'status': 'verified'},
                        headers=auth_headers(admin))
    assert again.status_code == 400

    stats = client.get('/api/verification/stats', headers=auth_headers(admin)).get_json()
    assert stats['verified_users'] == 1
    assert stats['rejected'] == 1


def test_status_and_liveness(client, make_user, auth_headers):
    user = make_user()

    assert client.post('/api/verification/liveness', json={}, headers=auth_headers(user)).status_code == 400
    response = client.post('/api/verification/liveness', json={'verified': True}, headers=auth_headers(user))
    assert response.get_json() == {'liveness_verified': True}

    status = client.get('/api/verification/status', headers=auth_headers(user)).get_json()
    assert status['kyc_status'] == 'none'
    assert status['liveness_verified']
    assert not status['kyc_verified']
