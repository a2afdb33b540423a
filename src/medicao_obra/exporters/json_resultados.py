from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import json

from ..models import Alerta, AnalisePlanilha, LinhaValidada, ResultadoComparacao


def _dump(payload: Dict[str, Any], path: str | Path, indent: int, ensure_ascii: bool) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=ensure_ascii, indent=indent)
    return out


def export_comparacao_json(
    resultado: ResultadoComparacao,
    path: str | Path,
    *,
    indent: int = 2,
    ensure_ascii: bool = False,
    meta: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Salva um JSON no formato:
    {
      "tipo": "tpu" | "medicao",
      "nome_base": ..., "nome_comparacao": ...,
      "resumo": {...},
      "items": [...],
      "meta": { ... }               # opcional
    }
    """
    payload: Dict[str, Any] = dict(resultado)
    if meta:
        payload["meta"] = meta
    return _dump(payload, path, indent, ensure_ascii)


def export_validacao_json(
    linhas: List[LinhaValidada],
    alertas: List[Alerta],
    estatisticas: Dict[str, Any],
    path: str | Path,
    *,
    indent: int = 2,
    ensure_ascii: bool = False,
    meta: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Salva um JSON com a validação linha a linha:
    {
      "total_linhas": <int>,
      "total_erros_calculo": <int>,
      "estatisticas": {...},
      "alertas": [...],
      "linhas": [...],
      "meta": { ... }               # opcional
    }
    """
    payload: Dict[str, Any] = {
        "total_linhas": len(linhas),
        "total_erros_calculo": sum(1 for l in linhas if l["erro_calculo"]),
        "estatisticas": estatisticas,
        "alertas": alertas,
        "linhas": linhas,
    }
    if meta:
        payload["meta"] = meta
    return _dump(payload, path, indent, ensure_ascii)


def export_analise_json(
    analise: AnalisePlanilha,
    path: str | Path,
    *,
    indent: int = 2,
    ensure_ascii: bool = False,
    meta: Optional[Dict[str, Any]] = None,
) -> Path:
    """Salva o resultado de `analisar_planilha` (erros + resumo)."""
    payload: Dict[str, Any] = {"resumo": analise["resumo"], "erros": analise["erros"]}
    if meta:
        payload["meta"] = meta
    return _dump(payload, path, indent, ensure_ascii)
