from sqladmin import ModelView
from app.models import Hospital


class HospitalAdmin(ModelView, model=Hospital):

    icon = "fa-solid fa-hospital"

    column_list = [
        Hospital.id,
        Hospital.hospital_name,
        Hospital.license_number,
        Hospital.contact_number,
        Hospital.city,
        Hospital.is_verified,
        Hospital.manager,
        Hospital.created_at,
    ]

    column_searchable_list = [Hospital.hospital_name, Hospital.license_number]
    form_excluded_columns = [Hospital.blood_requests, Hospital.created_at, Hospital.updated_at]
