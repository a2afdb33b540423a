"""
test_outliers.py: quantidades acima de média + 3σ (desvio populacional) do lote.
"""

import pytest

from medicao_obra.config import Limiares
from medicao_obra.validators.outliers import is_outlier, limiar_outlier, marcar_outliers


def _lote(medicao, quantidades):
    return [medicao(f"m{i}", quantidade=q) for i, q in enumerate(quantidades)]


class TestLimiar:

    def test_media_mais_tres_desvios(self):
        # [2, 4, 4, 4, 5, 5, 7, 9]: média 5, desvio populacional 2
        assert limiar_outlier([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(11.0)

    def test_ignora_nao_positivos(self):
        assert limiar_outlier([0, -5, 2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(11.0)

    def test_lote_vazio_ou_sem_positivos(self):
        assert limiar_outlier([]) == 0.0
        assert limiar_outlier([0, 0]) == 0.0
        assert is_outlier(5, 0.0) is False


class TestMarcarOutliers:

    def test_lote_de_cinco_nao_marca(self, medicao):
        """
        [10, 10, 10, 10, 1000]: média 208, desvio 396 -> limiar 1396.
        Com 5 pontos o z máximo é 4/√5 < 3; nenhum item passa do limiar.
        """
        out = marcar_outliers(_lote(medicao, [10, 10, 10, 10, 1000]))
        assert [e["status"] for e in out] == ["normal"] * 5

    def test_lote_grande_marca_so_o_atipico(self, medicao):
        out = marcar_outliers(_lote(medicao, [10] * 20 + [1000]))
        marcados = [e["id"] for e in out if e["status"] == "outlier"]
        assert marcados == ["m20"]

    def test_sigma_configuravel(self, medicao):
        out = marcar_outliers(_lote(medicao, [10, 10, 10, 10, 1000]), Limiares(sigma_outlier=1.0))
        assert [e["status"] for e in out] == ["normal"] * 4 + ["outlier"]

    def test_outlier_antigo_volta_a_normal_e_pending_fica(self, medicao):
        lote = _lote(medicao, [10, 10, 10])
        lote[0]["status"] = "outlier"
        lote[1]["status"] = "pending"
        out = marcar_outliers(lote)
        assert [e["status"] for e in out] == ["normal", "pending", "normal"]

    def test_retorna_copias(self, medicao):
        lote = _lote(medicao, [10] * 20 + [1000])
        marcar_outliers(lote)
        assert lote[-1]["status"] == "normal"
