from sqladmin import ModelView
from app.models import BloodRequest


class BloodRequestAdmin(ModelView, model=BloodRequest):
    """Read-only; status changes go through the API."""

    icon = "fa-solid fa-droplet"
    name_plural = "Blood Requests"

    can_create = False
    can_edit = False

    column_list = [
        BloodRequest.id,
        BloodRequest.blood_group,
        BloodRequest.units_needed,
        BloodRequest.urgency,
        BloodRequest.status,
        BloodRequest.hospital_name,
        BloodRequest.requester,
        BloodRequest.hospital,
        BloodRequest.donor,
        BloodRequest.created_at,
    ]

    column_sortable_list = [BloodRequest.created_at, BloodRequest.urgency, BloodRequest.status]
    column_default_sort = [(BloodRequest.created_at, True)]
