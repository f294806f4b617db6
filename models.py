# models.py
from datetime import date, datetime, time, timezone

from database import db  # Importa o objeto 'db' do nosso novo arquivo
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

# --- VOCABULÁRIOS ---
STATUS_EM_ANDAMENTO = 'in_progress'
STATUS_CONCLUIDA = 'completed'
STATUS_CICLO = (STATUS_EM_ANDAMENTO, STATUS_CONCLUIDA)

STATUS_ATIVOS = ('active', 'maintenance', 'inactive')
STATUS_MOTORISTA = ('active', 'inactive', 'suspended')
TIPOS_MAQUINA = ('tractor', 'excavator', 'loader', 'bulldozer', 'crane', 'other')

RECEITA = 'receita'
DESPESA = 'despesa'
TIPOS_TRANSACAO = (RECEITA, DESPESA)
TIPOS_VEICULO = ('caminhao', 'maquina')

CATEGORIAS_RECEITA = ['Frete', 'Transporte de Carga', 'Serviços Especiais', 'Locação de Máquinas', 'Outros']
CATEGORIAS_DESPESA = [
    'Combustível', 'Manutenção', 'Pedágio', 'Seguro', 'IPVA',
    'Multas', 'Alimentação', 'Hospedagem', 'Outros',
]
CATEGORIAS = {RECEITA: CATEGORIAS_RECEITA, DESPESA: CATEGORIAS_DESPESA}


def agora_utc():
    # Datas gravadas sem fuso, sempre em UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SerializavelMixin:
    """Colunas comuns a todo registro da conta e conversão para dados simples."""

    id = db.Column(db.Integer, primary_key=True)
    criado_em = db.Column(db.DateTime, nullable=False, default=agora_utc)
    atualizado_em = db.Column(db.DateTime, nullable=True, onupdate=agora_utc)

    def para_dict(self):
        dados = {}
        for coluna in self.__table__.columns:
            valor = getattr(self, coluna.name)
            if isinstance(valor, (date, datetime, time)):
                valor = valor.isoformat()
            dados[coluna.name] = valor
        return dados


# --- MODELOS ---
class Usuario(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    nome_empresa = db.Column(db.String(150), nullable=True)
    criado_em = db.Column(db.DateTime, nullable=False, default=agora_utc)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


class Caminhao(SerializavelMixin, db.Model):
    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    placa = db.Column(db.String(10), nullable=False)
    marca = db.Column(db.String(100), nullable=False)
    modelo = db.Column(db.String(100), nullable=False)
    ano = db.Column(db.Integer, nullable=False)
    cor = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active')
    quilometragem = db.Column(db.Integer, nullable=False, default=0)


class Maquina(SerializavelMixin, db.Model):
    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    numero_serie = db.Column(db.String(60), nullable=False)
    marca = db.Column(db.String(100), nullable=False)
    modelo = db.Column(db.String(100), nullable=False)
    ano = db.Column(db.Integer, nullable=False)
    tipo = db.Column(db.String(20), nullable=False, default='other')
    status = db.Column(db.String(20), nullable=False, default='active')
    horimetro = db.Column(db.Float, nullable=False, default=0.0)


class Motorista(SerializavelMixin, db.Model):
    __table_args__ = (db.UniqueConstraint('id_usuario', 'cpf', name='uq_motorista_cpf'),)

    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    nome = db.Column(db.String(150), nullable=False)
    cpf = db.Column(db.String(14), nullable=False)
    cnh_numero = db.Column(db.String(20), nullable=False)
    cnh_categoria = db.Column(db.String(5), nullable=False)
    cnh_validade = db.Column(db.Date, nullable=False)
    telefone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    endereco = db.Column(db.String(200), nullable=True)
    data_nascimento = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active')


class Viagem(SerializavelMixin, db.Model):
    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    # Referências sem cascade: o histórico sobrevive à exclusão do caminhão ou motorista.
    id_caminhao = db.Column(db.Integer, nullable=False, index=True)
    placa_caminhao = db.Column(db.String(10), nullable=False)
    id_motorista = db.Column(db.Integer, nullable=False, index=True)
    nome_motorista = db.Column(db.String(150), nullable=False)
    local_inicio = db.Column(db.String(200), nullable=False)
    local_fim = db.Column(db.String(200), nullable=True)
    km_inicial = db.Column(db.Integer, nullable=False)
    km_final = db.Column(db.Integer, nullable=True)
    data_inicio = db.Column(db.Date, nullable=False)
    hora_inicio = db.Column(db.Time, nullable=False)
    data_fim = db.Column(db.Date, nullable=True)
    hora_fim = db.Column(db.Time, nullable=True)
    litros_combustivel = db.Column(db.Float, nullable=True)
    consumo_combustivel = db.Column(db.Float, nullable=True)  # litros por km
    status = db.Column(db.String(20), nullable=False, default=STATUS_EM_ANDAMENTO)

    @property
    def data_referencia(self):
        return self.data_inicio


class Locacao(SerializavelMixin, db.Model):
    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    id_maquina = db.Column(db.Integer, nullable=False, index=True)
    serie_maquina = db.Column(db.String(60), nullable=False)
    id_motorista = db.Column(db.Integer, nullable=False, index=True)
    nome_motorista = db.Column(db.String(150), nullable=False)
    local_inicio = db.Column(db.String(200), nullable=False)
    local_fim = db.Column(db.String(200), nullable=True)
    horimetro_inicial = db.Column(db.Float, nullable=False)
    horimetro_final = db.Column(db.Float, nullable=True)
    data_inicio = db.Column(db.Date, nullable=False)
    data_fim = db.Column(db.Date, nullable=True)
    valor_hora = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_EM_ANDAMENTO)

    @property
    def data_referencia(self):
        return self.data_inicio


class Transacao(SerializavelMixin, db.Model):
    id_usuario = db.Column(db.Integer, db.ForeignKey('usuario.id'), nullable=False, index=True)
    tipo = db.Column(db.String(10), nullable=False)
    descricao = db.Column(db.String(200), nullable=False)
    valor = db.Column(db.Float, nullable=False)
    data = db.Column(db.Date, nullable=False)
    categoria = db.Column(db.String(50), nullable=False)
    id_caminhao = db.Column(db.Integer, nullable=True, index=True)
    id_motorista = db.Column(db.Integer, nullable=True, index=True)
    id_viagem = db.Column(db.Integer, nullable=True, index=True)
    id_locacao = db.Column(db.Integer, nullable=True, index=True)
    tipo_veiculo = db.Column(db.String(10), nullable=True)
    id_veiculo = db.Column(db.Integer, nullable=True)

    @property
    def data_referencia(self):
        return self.data
