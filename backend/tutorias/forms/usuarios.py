from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, SelectMultipleField, BooleanField
from wtforms.validators import DataRequired, Email, Length, Optional, ValidationError, EqualTo
from tutorias.utils.roles import ROLES_AUTOREGISTRO
from tutorias.utils.validadores import is_valid_cedula, MIN_PASSWORD

ROLES_CHOICES = [
    ('admin', 'Administrador'),
    ('coordinador', 'Coordinador'),
    ('docente', 'Docente'),
    ('estudiante', 'Estudiante'),
]

ESTADOS_CHOICES = [
    ('activo', 'Activo'),
    ('inactivo', 'Inactivo'),
]


def validar_cedula(form, field):
    if not is_valid_cedula(field.data):
        raise ValidationError('La cédula debe tener exactamente 10 dígitos')


# --- Formulario de Login ---
class LoginForm(FlaskForm):
    email = StringField('Email', validators=[
        DataRequired(message="El correo es obligatorio."),
        Email(message="Por favor, introduce una dirección de correo válida.")
    ])
    password = PasswordField('Contraseña', validators=[DataRequired(message="La contraseña es obligatoria.")])
    remember = BooleanField('Recordarme')


class SeleccionRolForm(FlaskForm):
    rol = SelectField('Rol', choices=ROLES_CHOICES, validators=[DataRequired()])


# --- Auto-registro: solo estudiantes y docentes ---
class RegistroForm(FlaskForm):
    cedula = StringField('Cédula', validators=[DataRequired(), validar_cedula])
    nombres = StringField('Nombres', validators=[DataRequired(), Length(max=100)])
    apellidos = StringField('Apellidos', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=100)])
    password = PasswordField('Contraseña', validators=[DataRequired(), Length(min=MIN_PASSWORD)])
    confirm_password = PasswordField('Confirmar Contraseña', validators=[
        DataRequired(),
        EqualTo('password', message='Las contraseñas deben coincidir.')
    ])
    rol = SelectField('Rol', choices=[(r, r.capitalize()) for r in ROLES_AUTOREGISTRO], validators=[DataRequired()])
    carrera = StringField('Carrera', validators=[DataRequired(), Length(max=150)])
    semestre = StringField('Semestre', validators=[Optional(), Length(max=50)])
    telefono = StringField('Teléfono', validators=[Optional(), Length(max=20)])


# --- Formularios para CRUD de Usuarios (Admin) ---
class UsuarioForm(FlaskForm):
    cedula = StringField('Cédula', validators=[DataRequired(), validar_cedula])
    nombres = StringField('Nombres', validators=[DataRequired(), Length(max=100)])
    apellidos = StringField('Apellidos', validators=[Optional(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=100)])
    password = PasswordField('Contraseña', validators=[DataRequired(), Length(min=MIN_PASSWORD)])
    rol = SelectMultipleField('Roles', choices=ROLES_CHOICES, validators=[DataRequired()])
    estado = SelectField('Estado', choices=ESTADOS_CHOICES, default='activo', validators=[Optional()])
    carrera = StringField('Carrera', validators=[Optional(), Length(max=150)])
    semestre = StringField('Semestre', validators=[Optional(), Length(max=50)])
    telefono = StringField('Teléfono', validators=[Optional(), Length(max=20)])
    coordinador_carrera = StringField('Carrera que coordina', validators=[Optional(), Length(max=150)])
    forzar_cambio_password = BooleanField('Forzar cambio de contraseña')

    def datos(self):
        return {
            'cedula': self.cedula.data,
            'nombres': self.nombres.data.strip(),
            'apellidos': (self.apellidos.data or '').strip(),
            'email': self.email.data,
            'password': self.password.data,
            'rol': self.rol.data,
            'estado': self.estado.data or 'activo',
            'carrera': self.carrera.data or '',
            'semestre': self.semestre.data or '',
            'telefono': self.telefono.data or '',
            'coordinador_carrera': self.coordinador_carrera.data or None,
            'forzar_cambio_password': self.forzar_cambio_password.data,
        }


class EditarUsuarioForm(FlaskForm):
    cedula = StringField('Cédula', validators=[Optional(), validar_cedula])
    nombres = StringField('Nombres', validators=[Optional(), Length(max=100)])
    apellidos = StringField('Apellidos', validators=[Optional(), Length(max=100)])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=100)])
    password = PasswordField('Contraseña (dejar en blanco para no cambiar)',
                             validators=[Optional(), Length(min=MIN_PASSWORD)])
    rol = SelectMultipleField('Roles', choices=ROLES_CHOICES, validators=[Optional()])
    estado = SelectField('Estado', choices=ESTADOS_CHOICES, validators=[Optional()], validate_choice=False)
    carrera = StringField('Carrera', validators=[Optional(), Length(max=150)])
    semestre = StringField('Semestre', validators=[Optional(), Length(max=50)])
    telefono = StringField('Teléfono', validators=[Optional(), Length(max=20)])
    coordinador_carrera = StringField('Carrera que coordina', validators=[Optional(), Length(max=150)])

    def validate_estado(self, field):
        if field.data and field.data not in dict(ESTADOS_CHOICES):
            raise ValidationError('Estado inválido')

    def cambios(self, enviados):
        """Solo los campos presentes en el cuerpo de la petición"""
        resultado = {}
        for nombre in ('cedula', 'nombres', 'apellidos', 'email', 'password', 'rol',
                       'estado', 'carrera', 'semestre', 'telefono', 'coordinador_carrera'):
            if nombre in enviados and getattr(self, nombre).data not in (None, '', []):
                resultado[nombre] = getattr(self, nombre).data
        return resultado


# --- Cambio de contraseña desde el perfil o en el primer ingreso ---
class CambioPasswordForm(FlaskForm):
    password_actual = PasswordField('Contraseña actual', validators=[Optional()])
    password_nueva = PasswordField('Nueva Contraseña', validators=[
        DataRequired(),
        Length(min=MIN_PASSWORD, message=f'La contraseña debe tener al menos {MIN_PASSWORD} caracteres.')
    ])
    confirm_password = PasswordField('Confirmar Nueva Contraseña', validators=[
        DataRequired(),
        EqualTo('password_nueva', message='Las contraseñas deben coincidir.')
    ])
