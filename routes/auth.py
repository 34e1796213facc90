"""Session authentication and role grant blueprint."""
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import IntegrityError
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length
from wtforms.validators import ValidationError as FormValidationError

from extensions import db
from models import ROLE_NAMES, User
from utils.access_policy import grant_role
from utils.audit import log_action
from utils.decorators import roles_required
from utils.errors import ValidationError
from utils.security import password_problems

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(FlaskForm):
    full_name = StringField("Full Name", validators=[DataRequired(), Length(max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), Length(max=128)])

    def validate_email(self, field):
        if User.query.filter_by(email=field.data.lower().strip()).first():
            raise FormValidationError("An account with this email already exists.")

    def validate_password(self, field):
        missing = password_problems(field.data)
        if missing:
            raise FormValidationError("Password needs " + ", ".join(missing) + ".")


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


class RoleGrantForm(FlaskForm):
    user_id = StringField("User", validators=[DataRequired(), Length(max=36)])
    role = StringField("Role", validators=[DataRequired()])

    def validate_role(self, field):
        if (field.data or "").strip().lower() not in ROLE_NAMES:
            raise FormValidationError("Invalid role selected.")


def _form_errors(form: FlaskForm) -> ValidationError:
    messages = [f"{name}: {'; '.join(errors)}" for name, errors in form.errors.items()]
    return ValidationError(" | ".join(messages) or "Invalid request")


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegistrationForm()
    if not form.validate_on_submit():
        raise _form_errors(form)

    try:
        user = User(
            full_name=form.full_name.data.strip(),
            email=form.email.data.lower().strip(),
            is_active=True,
        )
        user.set_password(form.password.data)
        db.session.add(user)
        db.session.flush()
        log_action("REGISTER", user.id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValidationError("Unable to register with the provided details.") from exc

    grant_role(user.id, "citizen")
    current_app.logger.info("User registered", extra={"user_id": user.id})
    return jsonify(user.public_payload()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        raise _form_errors(form)

    user = User.query.filter_by(email=form.email.data.lower().strip()).first()
    if not user or not user.check_password(form.password.data):
        log_action("LOGIN_FAILED", user.id if user else None)
        db.session.commit()
        return jsonify({"error": "Unauthorized", "message": "Invalid credentials provided."}), 401

    if not user.is_active:
        return jsonify({"error": "Forbidden", "message": "Your account is inactive."}), 403

    login_user(user, remember=bool(form.remember_me.data), duration=timedelta(days=30))
    session.permanent = True
    user.last_login_at = datetime.utcnow()
    log_action("LOGIN", user.id)
    db.session.commit()
    return jsonify(user.public_payload())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user_id = current_user.id
    logout_user()
    session.clear()
    log_action("LOGOUT", user_id)
    db.session.commit()
    return jsonify({"message": "Logged out."})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.public_payload())


@auth_bp.route("/roles", methods=["POST"])
@roles_required("admin")
def grant_user_role():
    form = RoleGrantForm()
    if not form.validate_on_submit():
        raise _form_errors(form)
    grant = grant_role(form.user_id.data.strip(), form.role.data, actor_id=current_user.id)
    return jsonify({"user_id": grant.user_id, "role": grant.role}), 201
