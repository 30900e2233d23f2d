"""
Tests for the complaint workflow layer, called directly with a session.
"""
import pytest
from fastapi import HTTPException
from sqlmodel import select

from models.audit_log import AuditLog
from models.complaints import ComplaintStatus, MediaType, ProgressStage
from models.user import Department, UserRole, UserStatus
from services import workflow
from utils.storage import StoredMedia

# ~7.8 m and ~15 m north of a point, at any longitude
EIGHT_METERS = 0.00007
FIFTEEN_METERS = 0.000135


def photo_media(name="p1.jpg"):
    return StoredMedia(url=f"/uploads/progress/{name}", public_id=f"progress/{name}", media_type=MediaType.image)


class TestAssignComplaint:

    def test_assigns_pending_complaint(self, session, make_complaint, worker, office, sms_outbox):
        complaint = make_complaint()

        result = workflow.assign_complaint(session, str(complaint.id), worker.id, assigned_by=office)

        assert result.status == ComplaintStatus.assigned
        assert result.assigned_worker_id == worker.id
        assert result.office_id == office.id
        assert sms_outbox[0]["to"] == worker.phone_number
        assert complaint.title in sms_outbox[0]["message"]

    def test_assignment_is_audited(self, session, make_complaint, worker, admin):
        complaint = make_complaint()

        workflow.assign_complaint(session, complaint.id, worker.id, assigned_by=admin)

        actions = [log.action for log in session.exec(select(AuditLog)).all()]
        assert "assigned_complaint" in actions
        assert "sms_notification_sent" in actions

    def test_admin_assignment_leaves_office_unset(self, session, make_complaint, worker, admin):
        complaint = make_complaint()

        result = workflow.assign_complaint(session, complaint.id, worker.id, assigned_by=admin)

        assert result.office_id is None

    def test_already_assigned_complaint_is_refused(self, session, make_complaint, make_user, worker, office):
        other = make_user(UserRole.worker, department=Department.road)
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, other.id, assigned_by=office)

        assert exc.value.status_code == 400
        assert "same-state" in exc.value.detail
        assert complaint.assigned_worker_id == worker.id

    def test_completed_complaint_cannot_be_reassigned(self, session, make_complaint, worker, office):
        complaint = make_complaint(status=ComplaintStatus.completed, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, worker.id, assigned_by=office)

        assert "terminal-state" in exc.value.detail

    def test_department_mismatch(self, session, make_complaint, make_user, office):
        water_worker = make_user(UserRole.worker, department=Department.water)
        complaint = make_complaint()

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, water_worker.id, assigned_by=office)

        assert exc.value.status_code == 400
        assert complaint.status == ComplaintStatus.pending
        assert complaint.assigned_worker_id is None

    def test_office_cannot_assign_other_departments(self, session, make_complaint, make_user):
        water_office = make_user(UserRole.office, department=Department.water)
        road_worker = make_user(UserRole.worker, department=Department.road)
        complaint = make_complaint()

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, road_worker.id, assigned_by=water_office)

        assert exc.value.status_code == 403

    def test_inactive_worker(self, session, make_complaint, make_user, office):
        idle = make_user(UserRole.worker, department=Department.road, status=UserStatus.inactive)
        complaint = make_complaint()

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, idle.id, assigned_by=office)

        assert exc.value.status_code == 400

    def test_non_worker_target(self, session, make_complaint, citizen, office):
        complaint = make_complaint()

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, complaint.id, citizen.id, assigned_by=office)

        assert exc.value.detail == "Assigned user is not a worker"

    def test_missing_and_malformed_ids(self, session, worker, office):
        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, "not-a-uuid", worker.id, assigned_by=office)
        assert exc.value.status_code == 400

        with pytest.raises(HTTPException) as exc:
            workflow.assign_complaint(session, "00000000-0000-0000-0000-000000000000", worker.id, assigned_by=office)
        assert exc.value.status_code == 404


class TestChangeStatus:

    def test_full_lifecycle_sets_completed_at_once(self, session, make_complaint, worker):
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)

        workflow.change_status(session, complaint.id, worker, "in-progress")
        assert complaint.completed_at is None

        workflow.change_status(session, complaint.id, worker, "completed")
        assert complaint.status == ComplaintStatus.completed
        assert complaint.completed_at is not None

    def test_completion_notifies_citizen(self, session, make_complaint, worker, citizen, sms_outbox):
        complaint = make_complaint(status=ComplaintStatus.in_progress, worker=worker)

        workflow.change_status(session, complaint.id, worker, "completed")

        assert sms_outbox[-1]["to"] == citizen.phone_number

    def test_rejection_keeps_reason_and_worker(self, session, make_complaint, worker):
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)

        workflow.change_status(session, complaint.id, worker, "rejected", reason="Private property")

        assert complaint.status == ComplaintStatus.rejected
        assert complaint.rejection_reason == "Private property"
        assert complaint.assigned_worker_id == worker.id
        assert complaint.completed_at is None

    @pytest.mark.parametrize("start,target,reason", [
        (ComplaintStatus.assigned, "completed", "invalid-forward-jump"),
        (ComplaintStatus.in_progress, "in-progress", "same-state"),
        (ComplaintStatus.in_progress, "pending", "invalid-forward-jump"),
        (ComplaintStatus.rejected, "in-progress", "terminal-state"),
        (ComplaintStatus.assigned, "archived", "unknown-state"),
    ])
    def test_illegal_moves(self, session, make_complaint, worker, start, target, reason):
        complaint = make_complaint(status=start, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.change_status(session, complaint.id, worker, target)

        assert exc.value.status_code == 400
        assert reason in exc.value.detail
        assert complaint.status == start

    def test_only_assigned_worker(self, session, make_complaint, make_user, worker):
        other = make_user(UserRole.worker, department=Department.road)
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.change_status(session, complaint.id, other, "in-progress")

        assert exc.value.status_code == 403


class TestProgressPhotos:

    def test_worker_on_site_can_document_start(self, session, make_complaint, worker):
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)
        lat, lon = complaint.latitude + EIGHT_METERS, complaint.longitude

        geofence = workflow.ensure_can_upload_progress(complaint, worker, lat, lon)
        photo = workflow.record_progress_photo(
            session, complaint, worker, ProgressStage.start, lat, lon, photo_media()
        )

        assert geofence.within_range is True
        assert geofence.distance_meters == pytest.approx(7.8, abs=0.1)
        assert photo.stage == ProgressStage.start
        assert [p.id for p in complaint.progress_photos] == [photo.id]
        # Photo uploads never move the complaint
        assert complaint.status == ComplaintStatus.assigned
        assert complaint.latitude != lat

    def test_worker_fifteen_meters_away_is_refused(self, session, make_complaint, worker):
        complaint = make_complaint(status=ComplaintStatus.assigned, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.ensure_can_upload_progress(
                complaint, worker, complaint.latitude + FIFTEEN_METERS, complaint.longitude
            )

        assert exc.value.status_code == 403
        assert "15.0 m away" in exc.value.detail

    @pytest.mark.parametrize("status", [ComplaintStatus.completed, ComplaintStatus.rejected])
    def test_closed_complaints_take_no_photos(self, session, make_complaint, worker, status):
        complaint = make_complaint(status=status, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.ensure_can_upload_progress(complaint, worker, complaint.latitude, complaint.longitude)

        assert exc.value.status_code == 400

    def test_other_worker_is_refused_even_on_site(self, session, make_complaint, make_user, worker):
        other = make_user(UserRole.worker, department=Department.road)
        complaint = make_complaint(status=ComplaintStatus.in_progress, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.ensure_can_upload_progress(complaint, other, complaint.latitude, complaint.longitude)

        assert exc.value.status_code == 403

    def test_radius_can_be_widened(self, session, make_complaint, worker):
        complaint = make_complaint(status=ComplaintStatus.in_progress, worker=worker)

        geofence = workflow.ensure_can_upload_progress(
            complaint, worker, complaint.latitude + FIFTEEN_METERS, complaint.longitude, max_distance_meters=20
        )

        assert geofence.within_range is True


class TestRateComplaint:

    def test_rates_completed_complaint(self, session, make_complaint, citizen, worker):
        complaint = make_complaint(status=ComplaintStatus.completed, worker=worker)

        result = workflow.rate_complaint(session, complaint.id, citizen, 4, "Quick fix")

        assert result.rating == 4
        assert result.feedback == "Quick fix"

    def test_cannot_rate_twice(self, session, make_complaint, citizen, worker):
        complaint = make_complaint(status=ComplaintStatus.completed, worker=worker, rating=5)

        with pytest.raises(HTTPException) as exc:
            workflow.rate_complaint(session, complaint.id, citizen, 3)

        assert exc.value.detail == "Complaint already rated"

    def test_cannot_rate_open_complaint(self, session, make_complaint, citizen, worker):
        complaint = make_complaint(status=ComplaintStatus.in_progress, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.rate_complaint(session, complaint.id, citizen, 3)

        assert exc.value.status_code == 400

    def test_only_owner_rates(self, session, make_complaint, make_user, worker):
        stranger = make_user(UserRole.citizen)
        complaint = make_complaint(status=ComplaintStatus.completed, worker=worker)

        with pytest.raises(HTTPException) as exc:
            workflow.rate_complaint(session, complaint.id, stranger, 3)

        assert exc.value.status_code == 403
