from .health import health_bp
from .checkout import checkout_bp
from .stripe_webhook import webhook_bp
from .admin import admin_bp
from .audit_logs import audit_bp
