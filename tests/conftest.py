"""
Configuração do pytest.

As variáveis de ambiente precisam existir ANTES de importar o app, porque a
URI do banco é lida na inicialização do Flask-SQLAlchemy.
"""
import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'chave-de-teste'

import pytest

from app import app as flask_app
from database import db
from models import Usuario
import repositorio


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()
    repositorio._assinantes.clear()


def _criar_usuario(username, nome_empresa):
    usuario = Usuario(username=username, nome_empresa=nome_empresa)
    usuario.set_password('segredo123')
    db.session.add(usuario)
    db.session.commit()
    return usuario.id


@pytest.fixture
def conta(app):
    return _criar_usuario('transportadora', 'Transportes Scala')


@pytest.fixture
def outra_conta(app):
    return _criar_usuario('concorrente', 'Outra Transportadora')


@pytest.fixture
def caminhao(conta):
    return repositorio.criar('caminhoes', conta, {
        'placa': 'abc1d23', 'marca': 'Volvo', 'modelo': 'FH 540', 'ano': 2021,
        'cor': 'Branco', 'quilometragem': 150000,
    })


@pytest.fixture
def motorista(conta):
    return repositorio.criar('motoristas', conta, {
        'nome': 'João da Silva', 'cpf': '123.456.789-00', 'cnh_numero': '01234567890',
        'cnh_categoria': 'E', 'cnh_validade': '2027-05-10', 'telefone': '(11) 99999-0000',
    })


@pytest.fixture
def maquina(conta):
    return repositorio.criar('maquinas', conta, {
        'numero_serie': 'CAT320-0001', 'marca': 'Caterpillar', 'modelo': '320', 'ano': 2019,
        'tipo': 'excavator', 'horimetro': 1500.5,
    })


@pytest.fixture
def viagem(conta, caminhao, motorista):
    return repositorio.criar('viagens', conta, {
        'id_caminhao': caminhao, 'id_motorista': motorista,
        'local_inicio': 'São Paulo - SP', 'km_inicial': 150000,
        'data_inicio': '2024-03-01', 'hora_inicio': '08:00',
    })


@pytest.fixture
def locacao(conta, maquina, motorista):
    return repositorio.criar('locacoes', conta, {
        'id_maquina': maquina, 'id_motorista': motorista,
        'local_inicio': 'Obra Campinas', 'horimetro_inicial': 1500.5,
        'data_inicio': '2024-01-01', 'valor_hora': 150.0,
    })


@pytest.fixture
def client(app, conta):
    cliente = app.test_client()
    resposta = cliente.post('/login', json={'username': 'transportadora', 'password': 'segredo123'})
    assert resposta.status_code == 200
    return cliente
