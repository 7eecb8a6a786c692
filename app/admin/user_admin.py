from sqladmin import ModelView
from app.models import User


class UserAdmin(ModelView, model=User):

    icon = "fa-solid fa-user"

    form_columns = [
        User.name,
        User.email,
        User.phone,
        User.role,
        User.blood_group,
        User.availability,
        User.is_active,
    ]

    column_list = [
        User.id,
        User.name,
        User.email,
        User.phone,
        User.role,
        User.blood_group,
        User.availability,
        User.total_donations,
        User.last_donation_date,
        User.is_active,
        User.created_at,
    ]

    column_searchable_list = [User.name, User.email]
    column_sortable_list = [User.created_at, User.total_donations]
    column_details_exclude_list = [User.password]
