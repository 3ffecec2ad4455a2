from werkzeug.security import generate_password_hash, check_password_hash
from bookswap.extensions import db
from bookswap.timeutil import utcnow, isoformat

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)

    # vacío hasta verificar el OTP
    password_hash = db.Column(db.String(255), nullable=True)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    otp_hash = db.Column(db.String(255), nullable=True)
    otp_expires_at = db.Column(db.DateTime, nullable=True)
    otp_attempts = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # 🔐 helpers de password
    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    # 🔐 helpers de OTP
    def set_otp(self, code: str, expires_at) -> None:
        self.otp_hash = generate_password_hash(code)
        self.otp_expires_at = expires_at
        self.otp_attempts = 0

    def check_otp(self, code: str, now) -> bool:
        if not self.otp_hash or not self.otp_expires_at:
            return False
        if self.otp_expires_at <= now:
            return False
        return check_password_hash(self.otp_hash, code)

    def register_failed_otp(self, max_attempts: int) -> bool:
        """Cuenta un intento fallido; al llegar al máximo el código deja de valer."""
        self.otp_attempts = (self.otp_attempts or 0) + 1
        if self.otp_attempts >= max_attempts:
            self.otp_hash = None
            self.otp_expires_at = None
            return True
        return False

    def clear_otp(self) -> None:
        self.otp_hash = None
        self.otp_expires_at = None
        self.otp_attempts = 0

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "is_verified": self.is_verified,
            "created_at": isoformat(self.created_at),
        }
