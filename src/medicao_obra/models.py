# src/medicao_obra/models.py
from __future__ import annotations

from typing import TypedDict, NotRequired, Dict, List, Literal, Optional


StatusMedicao = Literal["normal", "outlier", "pending"]
StatusComparacao = Literal["novo", "removido", "aumentou", "diminuiu", "estavel"]
TipoComparacao = Literal["tpu", "medicao"]
Regime = Literal["desonerado", "nao_desonerado"]
Severidade = Literal["high", "medium", "low"]


# =========================
# Itens de medição
# =========================
class MedicaoEntry(TypedDict):
    """
    Uma linha de um boletim/período de medição.
    `valor_total` é informado pela planilha; NÃO é garantido que seja
    quantidade * valor_unit (é justamente isso que o validador verifica).
    """
    id: str
    # Código externo do item (pode vir vazio)
    item: NotRequired[str]
    data: str
    responsavel: str
    local: str
    disciplina: str
    descricao: str
    quantidade: float
    unidade: str
    valor_unit: float
    valor_total: float
    status: StatusMedicao
    # texto cru da coluna de disciplina ("" se a planilha não tem)
    tipo: NotRequired[str]
    # colunas de boletim / memória de cálculo, só quando preenchidas
    qtd_solicitada: NotRequired[float]
    valor_solicitado: NotRequired[float]
    qtd_verificada: NotRequired[float]
    valor_verificado: NotRequired[float]
    classificacao: NotRequired[str]
    # número da medição (1ª, 2ª, ...)
    medicao: NotRequired[int]


# =========================
# Tabela de Preços Unitários (TPU)
# =========================
class TPUEntry(TypedDict):
    """Item de uma tabela de preços de referência (chave = codigo)."""
    id: str
    codigo: str
    nome: str
    unidade: str
    preco_unit: float
    # Tabela de origem, p.ex. "DER-SP", "DNIT", "SINAPI", "Outro"
    origem: str
    regime: Regime
    data_referencia: NotRequired[str]
    versao: NotRequired[str]


class TPUImportResult(TypedDict):
    entries: List[TPUEntry]
    total_itens: int
    origem: str
    data_referencia: str
    regime: Regime


# =========================
# Comparação entre períodos
# =========================
class ItemComparacao(TypedDict):
    """
    Resultado do alinhamento de uma chave entre base e comparação.
    Campos ausentes ficam como None (exibidos como "-").
    """
    codigo: str
    descricao: str
    unidade: Optional[str]
    # período base (anterior)
    valor_base: Optional[float]
    quantidade_base: Optional[float]
    total_base: Optional[float]
    # período de comparação (atual)
    valor_comparacao: Optional[float]
    quantidade_comparacao: Optional[float]
    total_comparacao: Optional[float]
    # variações percentuais
    variacao_preco: Optional[float]
    variacao_quantidade: Optional[float]
    variacao_total: Optional[float]
    # diferenças absolutas
    diferenca_valor: Optional[float]
    diferenca_quantidade: Optional[float]
    status: StatusComparacao


class ResumoComparacao(TypedDict):
    total_itens_base: int
    total_itens_comparacao: int
    itens_novos: int
    itens_removidos: int
    itens_aumentaram: int
    itens_diminuiram: int
    itens_estaveis: int
    valor_total_base: float
    valor_total_comparacao: float
    variacao_total_geral: float
    maior_aumento: Optional[ItemComparacao]
    maior_reducao: Optional[ItemComparacao]


class ResultadoComparacao(TypedDict):
    tipo: TipoComparacao
    nome_base: str
    nome_comparacao: str
    items: List[ItemComparacao]
    resumo: ResumoComparacao


# =========================
# Validação linha a linha
# =========================
class LinhaValidada(MedicaoEntry):
    valor_calculado: float
    diferenca: float
    diferenca_pct: float
    erro_calculo: bool
    # None quando não há erro de cálculo
    severidade: Optional[Severidade]


class Alerta(TypedDict):
    id: str
    tipo: Literal["error", "outlier"]
    severidade: Severidade
    titulo: str
    descricao: str
    item_id: str
    valor: float
    valor_esperado: NotRequired[float]


# =========================
# Análise célula a célula
# =========================
class ErroCelula(TypedDict):
    linha: int   # índice 0-based das linhas de dados
    coluna: int  # índice 0-based da coluna
    tipo: Literal["calculation", "inconsistent", "duplicate", "missing"]
    severidade: Literal["error", "warning", "info"]
    mensagem: str
    valor: NotRequired[float]
    valor_esperado: NotRequired[float]


class ResumoAnalise(TypedDict):
    total_linhas: int
    total_erros: int
    erros_calculo: int
    valores_inconsistentes: int
    duplicatas: int
    dados_faltantes: int


class AnalisePlanilha(TypedDict):
    erros: List[ErroCelula]
    resumo: ResumoAnalise


# campo canônico -> nome da coluna na planilha (ou None se não encontrada)
MapeamentoColunas = Dict[str, Optional[str]]


__all__ = [
    "StatusMedicao",
    "StatusComparacao",
    "TipoComparacao",
    "Regime",
    "Severidade",
    "MedicaoEntry",
    "TPUEntry",
    "TPUImportResult",
    "ItemComparacao",
    "ResumoComparacao",
    "ResultadoComparacao",
    "LinhaValidada",
    "Alerta",
    "ErroCelula",
    "ResumoAnalise",
    "AnalisePlanilha",
    "MapeamentoColunas",
]
