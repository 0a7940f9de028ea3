from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, SelectField, IntegerField
from wtforms.validators import DataRequired, Length, Optional, NumberRange, ValidationError
from tutorias.utils.validadores import is_future_datetime, parse_fecha_hora


class FechaHoraFuturaMixin:
    """Valida que fecha y hora tengan formato correcto y estén en el futuro"""

    def validate_fecha(self, field):
        if parse_fecha_hora(field.data) is None:
            raise ValidationError('Formato de fecha inválido (YYYY-MM-DD)')

    def validate_hora(self, field):
        if parse_fecha_hora(self.fecha.data, field.data) is None:
            raise ValidationError('Formato de hora inválido (HH:MM)')
        if not is_future_datetime(self.fecha.data, field.data):
            raise ValidationError('La fecha y hora deben ser posteriores al momento actual')


class SolicitudTutoriaForm(FechaHoraFuturaMixin, FlaskForm):
    docente_id = StringField('Docente', validators=[DataRequired()])
    materia_id = StringField('Materia', validators=[DataRequired()])
    semestre_id = StringField('Semestre', validators=[DataRequired()])
    tema = StringField('Tema', validators=[DataRequired(), Length(max=200)])
    descripcion = TextAreaField('Descripción', validators=[Optional(), Length(max=2000)])
    fecha = StringField('Fecha', validators=[DataRequired()])
    hora = StringField('Hora', validators=[DataRequired()])


class EstadoTutoriaForm(FlaskForm):
    estado = SelectField('Estado', choices=[
        ('aceptada', 'Aceptada'),
        ('rechazada', 'Rechazada'),
    ], validators=[DataRequired()])


class ReprogramarForm(FechaHoraFuturaMixin, FlaskForm):
    fecha = StringField('Fecha', validators=[DataRequired()])
    hora = StringField('Hora', validators=[DataRequired()])


class CalificacionForm(FlaskForm):
    calificacion = IntegerField('Calificación', validators=[
        DataRequired(message='La calificación es obligatoria.'),
        NumberRange(min=1, max=5, message='La calificación debe estar entre 1 y 5.')
    ])
    comentario = TextAreaField('Comentario', validators=[Optional(), Length(max=1000)])


class MensajeForm(FlaskForm):
    contenido = TextAreaField('Mensaje', validators=[DataRequired(), Length(max=2000)])
