"""
test_cli.py: comandos typer de ponta a ponta (planilhas em tmp_path).
"""

import json

import pytest
from typer.testing import CliRunner

from medicao_obra.cli import app

runner = CliRunner()


@pytest.fixture
def planilhas(escrever_xlsx, cabecalho_medicao):
    jan = escrever_xlsx("jan.xlsx", [
        cabecalho_medicao,
        ["1.1", "Escavação", 100, "m3", 50, 5000, "Terraplenagem", None],
        ["1.2", "Aterro", 40, "m3", 20, 900, "Terraplenagem", None],
    ])
    fev = escrever_xlsx("fev.xlsx", [
        cabecalho_medicao,
        ["1.1", "Escavação", 120, "m3", 50, 6000, "Terraplenagem", None],
        ["1.3", "Dreno", 10, "m", 30, 300, "Drenagem", None],
    ])
    return jan, fev


def test_validar(tmp_path, planilhas):
    jan, _ = planilhas
    out = tmp_path / "validacao.json"
    excel = tmp_path / "validacao.xlsx"

    res = runner.invoke(app, ["validar", "--planilha", str(jan), "--out", str(out), "--excel", str(excel)])

    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["total_linhas"] == 2
    assert data["total_erros_calculo"] == 1          # 40 × 20 = 800 ≠ 900
    assert data["alertas"][0]["item_id"] == "Medicao-2"
    assert data["estatisticas"]["por_disciplina"][0]["disciplina"] == "Terraplenagem"
    assert data["meta"]["planilha"] == str(jan)
    assert excel.exists()


def test_validar_com_historico(tmp_path, planilhas):
    jan, fev = planilhas
    out = tmp_path / "validacao.json"

    res = runner.invoke(app, ["validar", "--planilha", str(fev), "--historico", str(jan), "--out", str(out)])

    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text(encoding="utf-8"))
    # (5000 + 900 + 6000 + 300) / 4 × 2 linhas
    assert data["estatisticas"]["valor_medio_historico"] == pytest.approx(6100.0)
    assert data["estatisticas"]["disciplinas_risco"][0]["disciplina"] == "Terraplenagem"
    assert data["meta"]["historico"] == str(jan)


def test_validar_falha_sem_colunas(tmp_path, escrever_xlsx):
    ruim = escrever_xlsx("ruim.xlsx", [["Item", "Descrição"], ["1", "Escavação"]])
    res = runner.invoke(app, ["validar", "--planilha", str(ruim), "--out", str(tmp_path / "x.json")])
    assert res.exit_code == 1
    assert not (tmp_path / "x.json").exists()


def test_analisar_planilha(tmp_path, planilhas):
    jan, _ = planilhas
    out = tmp_path / "analise.json"
    res = runner.invoke(app, ["analisar-planilha", "--planilha", str(jan), "--out", str(out)])

    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["resumo"]["erros_calculo"] == 1
    assert data["erros"][0]["linha"] == 1


def test_comparar_medicoes(tmp_path, planilhas):
    jan, fev = planilhas
    out = tmp_path / "cmp.json"
    res = runner.invoke(app, [
        "comparar-medicoes", "--base", str(jan), "--comparacao", str(fev),
        "--out", str(out), "--excel", str(tmp_path / "cmp.xlsx"),
    ])

    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text(encoding="utf-8"))
    status = {it["codigo"]: it["status"] for it in data["items"]}
    assert status == {"1.1": "aumentou", "1.2": "removido", "1.3": "novo"}
    assert (data["nome_base"], data["nome_comparacao"]) == ("jan", "fev")
    assert data["meta"]["politica_preco"] == "primeiro"


def test_comparar_medicoes_politica_invalida(tmp_path, planilhas):
    jan, fev = planilhas
    res = runner.invoke(app, [
        "comparar-medicoes", "--base", str(jan), "--comparacao", str(fev),
        "--politica-preco", "mediana", "--out", str(tmp_path / "cmp.json"),
    ])
    assert res.exit_code != 0
    assert not (tmp_path / "cmp.json").exists()


def test_comparar_tpu_texto(tmp_path):
    base = tmp_path / "tpu_2023.txt"
    comp = tmp_path / "tpu_2024.txt"
    base.write_text("Data-base 01/2023\n21.01.01 Escavação manual m3 100,00\n", encoding="utf-8")
    comp.write_text("Data-base 01/2024\n21.01.01 Escavação manual m3 110,00\n21.01.02 Aterro m3 50,00\n", encoding="utf-8")
    out = tmp_path / "tpu.json"

    res = runner.invoke(app, [
        "comparar-tpu", "--base", str(base), "--comparacao", str(comp),
        "--nome-base", "2023", "--nome-comparacao", "2024", "--out", str(out),
    ])

    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["resumo"]["itens_aumentaram"] == 1
    assert data["resumo"]["itens_novos"] == 1
    assert data["meta"]["data_referencia_comparacao"] == "01/2024"


def test_comparar_tpu_sem_itens(tmp_path):
    vazio = tmp_path / "vazio.txt"
    vazio.write_text("nada aqui\n", encoding="utf-8")
    res = runner.invoke(app, [
        "comparar-tpu", "--base", str(vazio), "--comparacao", str(vazio),
        "--out", str(tmp_path / "tpu.json"),
    ])
    assert res.exit_code == 1
