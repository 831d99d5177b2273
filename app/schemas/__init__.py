# Schemas package (re-export feature modules for stable imports)
from .booking.booking import *
from .common.common import *
