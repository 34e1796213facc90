"""Core data models for identities, role grants, complaints, audit trails, and reference data."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


ROLE_NAMES: tuple[str, ...] = (
	"citizen",
	"official",
	"admin",
)

# Ordered by privilege; the highest grant a user holds wins.
ROLE_PRECEDENCE: tuple[str, ...] = (
	"admin",
	"official",
	"citizen",
)

COMPLAINT_CATEGORIES: dict[str, str] = {
	"pothole": "Pothole",
	"streetlight": "Streetlight",
	"garbage": "Garbage",
	"water": "Water",
	"drainage": "Drainage",
	"road": "Road Damage",
	"other": "Other",
}

COMPLAINT_STATUSES: tuple[str, ...] = (
	"Open",
	"Under Review",
	"Resolved",
)

PROJECT_CATEGORIES: tuple[str, ...] = (
	"Flyover",
	"Roads",
	"Drainage",
	"Sanitation",
	"Metro",
	"Parks",
	"Water Supply",
)


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	full_name = db.Column(db.String(150), nullable=False)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	role_grants = db.relationship("UserRole", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return check_password_hash(self.password_hash, password)

	@property
	def active(self) -> bool:  # Flask-Login compatibility alias
		return self.is_active

	def public_payload(self) -> dict:
		from utils.access_policy import get_role  # Local import to avoid circular dependency

		return {
			"id": self.id,
			"name": self.full_name,
			"email": self.email,
			"role": get_role(self.id),
			"created_at": self.created_at.isoformat(),
		}


class UserRole(db.Model):
	__tablename__ = "user_roles"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	role = db.Column(db.String(20), nullable=False, index=True)
	granted_by = db.Column(db.String(36), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.UniqueConstraint("user_id", "role", name="uq_user_role_grant"),
		db.CheckConstraint("role IN ('citizen','official','admin')", name="role_valid"),
	)

	user = db.relationship("User", back_populates="role_grants")


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False, index=True)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	category = db.Column(db.String(30), nullable=False, index=True)
	description = db.Column(db.Text, nullable=False)
	latitude = db.Column(db.Float, nullable=True)
	longitude = db.Column(db.Float, nullable=True)
	address = db.Column(db.String(500), nullable=False)
	citizen_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)
	is_anonymous = db.Column(db.Boolean, nullable=False, default=False, index=True)
	status = db.Column(db.String(20), nullable=False, default="Open", index=True)
	official_assigned = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)
	image_url = db.Column(db.String(1024), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(
			"category IN ('pothole','streetlight','garbage','water','drainage','road','other')",
			name="category_valid",
		),
		db.CheckConstraint(
			"status IN ('Open','Under Review','Resolved')",
			name="status_valid",
		),
		db.CheckConstraint(
			"NOT is_anonymous OR citizen_id IS NULL",
			name="anonymous_has_no_citizen",
		),
		db.Index("ix_complaints_citizen_created", "citizen_id", "created_at"),
	)

	citizen = db.relationship("User", foreign_keys=[citizen_id])
	assignee = db.relationship("User", foreign_keys=[official_assigned])
	status_history = db.relationship(
		"ComplaintStatusHistory",
		back_populates="complaint",
		order_by="ComplaintStatusHistory.changed_at",
		cascade="all, delete-orphan",
	)

	@property
	def category_label(self) -> str:
		return COMPLAINT_CATEGORIES.get(self.category, self.category.title())

	@property
	def location(self) -> dict:
		return {"lat": self.latitude, "lng": self.longitude, "address": self.address}

	def public_payload(self) -> dict:
		from utils.formatting import status_badge, time_ago  # Local import to avoid circular dependency
		from utils.lifecycle import is_terminal, next_statuses, progress_steps

		return {
			"id": str(self.id),
			"category": self.category,
			"category_label": self.category_label,
			"description": self.description,
			"location": self.location,
			"citizen_id": self.citizen_id,
			"is_anonymous": bool(self.is_anonymous),
			"status": self.status,
			"status_badge": status_badge(self.status),
			"progress": progress_steps(self.status),
			"next_statuses": next_statuses(self.status),
			"closed": is_terminal(self.status),
			"official_assigned": self.official_assigned,
			"image_url": self.image_url,
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
			"updated_ago": time_ago(self.updated_at),
		}


class ComplaintStatusHistory(db.Model):
	__tablename__ = "complaint_status_history"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	previous_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=False, index=True)
	remarks = db.Column(db.String(500), nullable=True)
	changed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(
			"new_status IN ('Open','Under Review','Resolved')",
			name="new_status_valid",
		),
	)

	complaint = db.relationship("Complaint", back_populates="status_history")
	actor = db.relationship("User")

	def public_payload(self) -> dict:
		return {
			"previous_status": self.previous_status,
			"new_status": self.new_status,
			"remarks": self.remarks,
			"changed_by": self.changed_by,
			"changed_at": self.changed_at.isoformat(),
		}


class Project(db.Model):
	__tablename__ = "projects"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	title = db.Column(db.String(255), nullable=False, index=True)
	category = db.Column(db.String(80), nullable=False, index=True)
	short_description = db.Column(db.String(500), nullable=False)
	detailed_description = db.Column(db.Text, nullable=True)
	cost = db.Column(db.Float, nullable=False)
	ward = db.Column(db.Integer, nullable=False, index=True)
	contractor = db.Column(db.String(255), nullable=True)
	start_date = db.Column(db.Date, nullable=False)
	completion_date = db.Column(db.Date, nullable=True)
	duration_months = db.Column(db.Integer, nullable=True)
	progress_percent = db.Column(db.Integer, nullable=True, default=0)
	geo_location = db.Column(db.JSON, nullable=True)
	images = db.Column(db.JSON, nullable=False, default=list)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint(
			"progress_percent IS NULL OR (progress_percent >= 0 AND progress_percent <= 100)",
			name="progress_range",
		),
		db.Index("ix_project_lookup", "category", "ward"),
	)

	def public_payload(self) -> dict:
		from utils.formatting import format_inr  # Local import to avoid circular dependency

		return {
			"id": str(self.id),
			"title": self.title,
			"category": self.category,
			"short_description": self.short_description,
			"detailed_description": self.detailed_description,
			"cost": self.cost,
			"cost_label": format_inr(self.cost),
			"ward": self.ward,
			"ward_label": f"Ward {self.ward}",
			"contractor": self.contractor,
			"start_date": self.start_date.isoformat(),
			"completion_date": self.completion_date.isoformat() if self.completion_date else None,
			"duration_months": self.duration_months,
			"progress_percent": self.progress_percent or 0,
			"geo_location": self.geo_location,
			"images": list(self.images or []),
			"created_at": self.created_at.isoformat(),
		}


class BudgetFlow(db.Model):
	__tablename__ = "budget_flow"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	fiscal_year = db.Column(db.String(20), nullable=False, unique=True, index=True)
	bbmp_budget = db.Column(db.Float, nullable=False)
	state_funds = db.Column(db.Float, nullable=False)
	central_funds = db.Column(db.Float, nullable=False)
	category_wise_breakdown = db.Column(db.JSON, nullable=False, default=dict)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	@property
	def total(self) -> float:
		return float(self.bbmp_budget or 0) + float(self.state_funds or 0) + float(self.central_funds or 0)
