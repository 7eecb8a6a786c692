from .user import User
from .hospital import Hospital
from .request import BloodRequest
