from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, SelectField, IntegerField, BooleanField, DecimalField
from wtforms.validators import DataRequired, Length, Optional, NumberRange
from tutorias.services.academico import UNIDADES_ACADEMICAS


class CarreraForm(FlaskForm):
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=150)])
    codigo = StringField('Código', validators=[DataRequired(), Length(max=20)])
    descripcion = TextAreaField('Descripción', validators=[Optional(), Length(max=500)])
    activa = BooleanField('Activa')


class SemestreForm(FlaskForm):
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=50)])
    numero = IntegerField('Número', validators=[Optional(), NumberRange(min=1, max=99)])
    activo = BooleanField('Activo')


class MateriaForm(FlaskForm):
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=150)])
    codigo = StringField('Código', validators=[DataRequired(), Length(max=20)])
    carrera_id = StringField('Carrera', validators=[DataRequired()])
    semestre_id = StringField('Semestre', validators=[DataRequired()])
    descripcion = TextAreaField('Descripción', validators=[Optional(), Length(max=500)])
    unidad = SelectField('Unidad académica', choices=[('', '')] + [(u, u) for u in UNIDADES_ACADEMICAS],
                         validators=[Optional()])
    creditos = DecimalField('Créditos', validators=[Optional(), NumberRange(min=0)])
    horas = DecimalField('Horas', validators=[Optional(), NumberRange(min=0)])

    def datos(self):
        return {
            'nombre': self.nombre.data.strip(),
            'codigo': self.codigo.data.strip().upper(),
            'carrera_id': self.carrera_id.data,
            'semestre_id': self.semestre_id.data,
            'descripcion': self.descripcion.data or '',
            'unidad': self.unidad.data or None,
            'creditos': float(self.creditos.data) if self.creditos.data is not None else None,
            'horas': float(self.horas.data) if self.horas.data is not None else None,
        }


class AsignacionForm(FlaskForm):
    docente_id = StringField('Docente', validators=[DataRequired()])
    materia_id = StringField('Materia', validators=[DataRequired()])
    semestre_id = StringField('Semestre', validators=[DataRequired()])
    carrera_id = StringField('Carrera', validators=[DataRequired()])


class PeriodoForm(FlaskForm):
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=100)])
    fecha_inicio = StringField('Fecha de inicio', validators=[DataRequired()])
    fecha_fin = StringField('Fecha de fin', validators=[DataRequired()])
    activo = BooleanField('Activo')
