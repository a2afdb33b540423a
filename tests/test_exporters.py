"""
test_exporters.py: saídas JSON e Excel.
"""

import json

from openpyxl import load_workbook

from medicao_obra.exporters.excel import export_comparacao_excel, export_medicoes_excel
from medicao_obra.exporters.json_resultados import (
    export_analise_json,
    export_comparacao_json,
    export_validacao_json,
)
from medicao_obra.processor import comparar_tpu
from medicao_obra.validators.alertas import calcular_estatisticas, gerar_alertas
from medicao_obra.validators.calculo import validar_calculos
from medicao_obra.validators.planilha import analisar_planilha


def _resultado(tpu):
    return comparar_tpu([tpu("A", 100), tpu("C", 5)], [tpu("A", 110), tpu("B", 50)], "2023", "2024")


class TestJSON:

    def test_comparacao_com_meta(self, tmp_path, tpu):
        out = export_comparacao_json(_resultado(tpu), tmp_path / "sub" / "cmp.json", meta={"origem": "DER-SP"})
        data = json.loads(out.read_text(encoding="utf-8"))

        assert data["tipo"] == "tpu"
        assert data["meta"] == {"origem": "DER-SP"}
        assert data["resumo"]["itens_novos"] == 1
        assert {it["codigo"] for it in data["items"]} == {"A", "B", "C"}

    def test_validacao(self, tmp_path, medicao):
        lote = [medicao("m1", descricao="Escavação", valor_total=600), medicao("m2")]
        out = export_validacao_json(
            validar_calculos(lote), gerar_alertas(lote), dict(calcular_estatisticas(lote)),
            tmp_path / "val.json",
        )
        texto = out.read_text(encoding="utf-8")
        data = json.loads(texto)

        assert "Escavação" in texto          # ensure_ascii=False
        assert data["total_linhas"] == 2
        assert data["total_erros_calculo"] == 1
        assert data["alertas"][0]["id"] == "error-m1"
        assert "meta" not in data

    def test_analise(self, tmp_path):
        analise = analisar_planilha(["Item", "Descrição"], [["1", ""]])
        data = json.loads(export_analise_json(analise, tmp_path / "a.json").read_text(encoding="utf-8"))
        assert data["resumo"]["dados_faltantes"] == 1
        assert data["erros"][0]["tipo"] == "missing"


class TestExcel:

    def test_comparacao(self, tmp_path, tpu):
        out = export_comparacao_excel(_resultado(tpu), tmp_path / "cmp.xlsx")
        wb = load_workbook(out)

        assert wb.sheetnames == ["itens", "resumo"]
        ws = wb["itens"]
        headers = [c.value for c in ws[1]]
        assert headers[:3] == ["codigo", "descricao", "unidade"]
        status = [r[headers.index("status")] for r in ws.iter_rows(min_row=2, values_only=True)]
        assert sorted(status) == ["Aumentou", "Novo", "Removido"]

        resumo = {r[0]: r[1] for r in wb["resumo"].iter_rows(min_row=2, values_only=True)}
        assert resumo["Novos"] == 1
        assert resumo["Maior aumento"] == "A"
        assert resumo["Maior redução"] == "-"

    def test_medicoes(self, tmp_path, medicao):
        out = export_medicoes_excel([medicao("m1", item="1.1")], tmp_path / "med.xlsx")
        ws = load_workbook(out)["Medições"]
        headers = [c.value for c in ws[1]]
        assert headers == [
            "Item", "Data", "Responsável", "Local", "Disciplina", "Descrição",
            "Quantidade", "Unidade", "Valor Unitário", "Valor Total", "Status",
        ]
        row = [c.value for c in ws[2]]
        assert row[0] == "1.1"
        assert row[9] == 500

    def test_medicoes_com_validacao(self, tmp_path, medicao):
        linhas = validar_calculos([medicao("m1", valor_total=600)])
        ws = load_workbook(export_medicoes_excel(linhas, tmp_path / "v.xlsx", incluir_validacao=True))["Medições"]
        headers = [c.value for c in ws[1]]
        row = [c.value for c in ws[2]]
        assert row[headers.index("Erro de Cálculo")] == "SIM"
        assert row[headers.index("Valor Calculado")] == 500

    def test_medicoes_vazio(self, tmp_path):
        ws = load_workbook(export_medicoes_excel([], tmp_path / "vazio.xlsx"))["Medições"]
        assert ws.max_row == 1
