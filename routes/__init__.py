from .public import public_bp
from .auth import auth_bp
from .admin import admin_bp
from .teacher import teacher_bp
