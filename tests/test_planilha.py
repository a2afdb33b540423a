"""
test_planilha.py: análise célula a célula e mapeamento de colunas.
"""

import pytest

from medicao_obra.adapters.colunas import indice_coluna, mapear_colunas
from medicao_obra.validators.planilha import analisar_planilha


CABECALHOS = ["Item", "Descrição", "Quantidade", "Valor Unitário", "Valor Total"]


class TestMapearColunas:

    def test_cabecalho_tipico(self, cabecalho_medicao):
        m = mapear_colunas(cabecalho_medicao)
        assert m["item"] == "Item"
        assert m["descricao"] == "Descrição"
        assert m["quantidade"] == "Quantidade"
        assert m["unidade"] == "Unidade"
        assert m["valor_unit"] == "Valor Unitário"
        assert m["valor_total"] == "Valor Total"
        assert m["disciplina"] == "Disciplina"
        assert m["data"] == "Data"
        assert m["responsavel"] is None
        assert m["local"] is None

    def test_abreviacoes(self):
        m = mapear_colunas(["Cód.", "Serviço", "Qtde", "Un", "P.U.", "Total", "Localização"])
        assert m["item"] == "Cód."
        assert m["descricao"] == "Serviço"
        assert m["quantidade"] == "Qtde"
        assert m["unidade"] == "Un"
        assert m["valor_unit"] == "P.U."
        assert m["valor_total"] == "Total"
        assert m["local"] == "Localização"

    def test_coluna_usada_uma_vez(self):
        # "Valor Unitário" não pode ser também o valor total
        m = mapear_colunas(["Descrição", "Valor Unitário"])
        assert m["valor_unit"] == "Valor Unitário"
        assert m["valor_total"] is None

    def test_un_nao_casa_dentro_de_palavra(self):
        m = mapear_colunas(["Descrição", "Fundação"])
        assert m["unidade"] is None

    def test_descricao_do_item_fica_com_a_descricao(self):
        m = mapear_colunas(["Código", "Descrição do Item", "Quantidade", "Unidade", "Valor Unitário", "Valor Total"])
        assert m["item"] == "Código"
        assert m["descricao"] == "Descrição do Item"
        assert m["quantidade"] == "Quantidade"
        assert m["valor_total"] == "Valor Total"

    def test_sem_coluna_de_codigo_item_fica_vazio(self):
        m = mapear_colunas(["Descrição do Item", "Qtd"])
        assert m["descricao"] == "Descrição do Item"
        assert m["item"] is None

    def test_colunas_de_memoria_de_calculo(self):
        m = mapear_colunas([
            "Item", "Descrição da Atividade", "Un", "Qtd Solicitada", "Qtd Verificada",
            "Valor Contratado", "Valor Verificado", "Classificação", "Medição",
        ])
        assert m["descricao"] == "Descrição da Atividade"
        assert m["qtd_solicitada"] == "Qtd Solicitada"
        assert m["qtd_verificada"] == "Qtd Verificada"
        assert m["valor_solicitado"] == "Valor Contratado"
        assert m["valor_verificado"] == "Valor Verificado"
        assert m["classificacao"] == "Classificação"
        assert m["medicao"] == "Medição"
        # "qtd" e "valor" não roubam as colunas específicas
        assert m["quantidade"] is None
        assert m["valor_total"] is None

    def test_sublinhado_vale_como_espaco(self):
        m = mapear_colunas(["valor_unitario", "qtd_solicitada"])
        assert m["valor_unit"] == "valor_unitario"
        assert m["qtd_solicitada"] == "qtd_solicitada"

    def test_ignora_cabecalhos_vazios(self):
        m = mapear_colunas([None, "", "Quantidade"])
        assert m["quantidade"] == "Quantidade"

    def test_indice_coluna(self):
        assert indice_coluna(CABECALHOS, "Quantidade") == 2
        assert indice_coluna(CABECALHOS, None) is None
        assert indice_coluna(CABECALHOS, "Nada") is None


class TestAnalisarPlanilha:

    def test_resumo_e_tipos(self):
        linhas = [
            ["1", "Escavação", 10, 50, 600],
            ["2", "Aterro", 2, 10, 20],
            ["2", "Dreno", None, 5, 5],
        ]
        res = analisar_planilha(CABECALHOS, linhas)
        r = res["resumo"]

        assert r["total_linhas"] == 3
        assert r["erros_calculo"] == 1
        assert r["duplicatas"] == 2
        assert r["dados_faltantes"] == 1
        assert r["valores_inconsistentes"] == 0
        assert r["total_erros"] == 4

    def test_erro_de_calculo_aponta_coluna_do_total(self):
        res = analisar_planilha(CABECALHOS, [["1", "Escavação", 10, 50, 600]])
        (e,) = [e for e in res["erros"] if e["tipo"] == "calculation"]
        assert (e["linha"], e["coluna"]) == (0, 4)
        assert e["severidade"] == "error"
        assert e["valor"] == 600
        assert e["valor_esperado"] == 500

    def test_faltante_e_duplicata_mensagens(self):
        res = analisar_planilha(CABECALHOS, [["A", "", 1, 1, 1], ["a ", "x", 1, 1, 1]])
        faltante = next(e for e in res["erros"] if e["tipo"] == "missing")
        assert faltante["mensagem"] == 'Campo "Descrição" está vazio'
        assert faltante["severidade"] == "info"

        dups = [e for e in res["erros"] if e["tipo"] == "duplicate"]
        assert [d["linha"] for d in dups] == [0, 1]
        assert dups[0]["mensagem"] == 'Valor "a" aparece 2 vezes (linhas: 1, 2)'

    def test_sem_colunas_de_calculo_nao_verifica(self):
        res = analisar_planilha(["Item", "Descrição", "Valor"], [["1", "x", 10]])
        assert res["resumo"]["erros_calculo"] == 0

    def test_valor_inconsistente(self):
        linhas = [[str(i), "Serviço", 10, 1, 10] for i in range(20)]
        linhas.append(["99", "Serviço", 1000, 1, 1000])
        res = analisar_planilha(CABECALHOS, linhas)
        inc = [e for e in res["erros"] if e["tipo"] == "inconsistent"]
        assert {(e["linha"], e["coluna"]) for e in inc} == {(20, 2), (20, 4)}
        assert all(e["severidade"] == "warning" for e in inc)

    def test_planilha_vazia(self):
        res = analisar_planilha(CABECALHOS, [])
        assert res["erros"] == []
        assert res["resumo"]["total_linhas"] == 0

    @pytest.mark.parametrize("linha", [[], ["1"]])
    def test_linhas_curtas_nao_quebram(self, linha):
        res = analisar_planilha(CABECALHOS, [linha])
        assert res["resumo"]["dados_faltantes"] == 5 - len(linha)
