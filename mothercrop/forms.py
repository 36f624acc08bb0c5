"""Flask-WTF forms for the JSON and form-encoded API payloads.

Flask-WTF reads ``request.get_json()`` when the request is JSON, so the same
form validates both kinds of submission.
"""
from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

from .models import POST_STATUSES, SOIL_MODES, USER_ROLE_CHOICES, USER_ROLE_LABELS
from .utils import EMAIL_RE


class _BaseApiForm(FlaskForm):
    class Meta:
        # CSRF is enforced globally in app.before_request.
        csrf = False


_email_validator = Regexp(EMAIL_RE, message='Please provide a valid email address.')
_slug_validator = Regexp(
    r"^[a-z0-9-]*$",
    message="Slug can only contain lowercase letters, numbers, and hyphens.",
)


class LoginForm(_BaseApiForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=80)])
    password = StringField('Password', validators=[DataRequired(), Length(max=200)])


class UserForm(_BaseApiForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=80)])
    password = StringField('Password', validators=[DataRequired(), Length(max=200)])
    role = SelectField(
        'Role',
        choices=[(role, USER_ROLE_LABELS[role]) for role in USER_ROLE_CHOICES],
        validators=[Optional()],
        validate_choice=False,
    )


class SubscribeForm(_BaseApiForm):
    email = StringField('Email', validators=[DataRequired(), Length(max=254), _email_validator])


class ContactMessageForm(_BaseApiForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    email = StringField('Email', validators=[DataRequired(), Length(max=254), _email_validator])
    subject = StringField('Subject', validators=[Optional(), Length(max=200)])
    message = TextAreaField('Message', validators=[DataRequired(), Length(max=5000)])


class BlogPostForm(_BaseApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=220)])
    slug = StringField('Slug', validators=[Optional(), Length(max=220), _slug_validator])
    excerpt = StringField('Excerpt', validators=[Optional(), Length(max=600)])
    content = TextAreaField('Content', validators=[Optional(), Length(max=200000)])
    category = StringField('Category', validators=[Optional(), Length(max=80)])
    imageUrl = StringField('Image URL', validators=[Optional(), Length(max=500)])
    author = StringField('Author', validators=[Optional(), Length(max=80)])
    status = SelectField(
        'Status',
        choices=[(status, status) for status in POST_STATUSES],
        validators=[Optional()],
        validate_choice=False,
    )
    metaTitle = StringField('Meta title', validators=[Optional(), Length(max=220)])
    metaDescription = StringField('Meta description', validators=[Optional(), Length(max=600)])
    keywords = StringField('Keywords', validators=[Optional(), Length(max=300)])


class ServiceForm(_BaseApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=160)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    details = TextAreaField('Details', validators=[Optional(), Length(max=20000)])
    iconName = StringField('Icon', validators=[Optional(), Length(max=60)])
    price = StringField('Price', validators=[Optional(), Length(max=60)])


class BlogTopicForm(_BaseApiForm):
    topic = StringField('Topic', validators=[DataRequired(), Length(max=300)])


class SoilAnalysisForm(_BaseApiForm):
    mode = SelectField(
        'Mode',
        choices=[(mode, mode) for mode in SOIL_MODES],
        validators=[Optional()],
        validate_choice=False,
    )
    location = StringField('Location', validators=[Optional(), Length(max=160)])


class RotationPlanForm(_BaseApiForm):
    crops = StringField('Crops', validators=[DataRequired(), Length(max=600)])
    beds = IntegerField('Beds', default=3, validators=[Optional(), NumberRange(min=1, max=12)])
    years = IntegerField('Years', default=3, validators=[Optional(), NumberRange(min=1, max=6)])
