"""Versioned output contract sent to the AI document service.

The JSON Schema and instruction text are fixed per SCHEMA_VERSION. Bump the
version whenever either changes: it is stored on every ExtractionJob so old
jobs stay interpretable.
"""

from __future__ import annotations

from typing import Any

SCHEMA_NAME = "esg_document_extraction"
SCHEMA_VERSION = "2"

_SNIPPET = {"type": "string", "maxLength": 280}
_CONFIDENCE = {"type": "number", "minimum": 0, "maximum": 1}

JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "confidence": _CONFIDENCE,
        "_evidence_chars": {"type": "number", "minimum": 0},
        "target_table": {"type": "string", "enum": ["waste_logs", "suppliers", "licenses"]},
        # License
        "license_number": {"type": "string"},
        "issuing_agency": {"type": "string"},
        "issue_date": {"type": "string", "format": "date"},
        "expiration_date": {"type": "string", "format": "date"},
        "company_name": {"type": "string"},
        "cnpj": {"type": "string"},
        "address": {"type": "string"},
        "coordinates": {
            "type": "object",
            "properties": {
                "latitude": {"type": "number"},
                "longitude": {"type": "number"},
            },
        },
        "activity_description": {"type": "string"},
        "company_size": {"type": "string", "enum": ["micro", "pequeno", "medio", "grande"]},
        # Supplier
        "razao_social": {"type": "string"},
        "contato": {"type": "string"},
        "email": {"type": "string"},
        "telefone": {"type": "string"},
        # Waste report period
        "data_start": {"type": "string", "format": "date"},
        "data_end": {"type": "string", "format": "date"},
        "field_evidence": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "field": {"type": "string"},
                    "source_snippet": _SNIPPET,
                    "confidence": _CONFIDENCE,
                },
                "required": ["field", "source_snippet"],
            },
        },
        "conditions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "code": {"type": "string"},
                    "section_title": {"type": "string"},
                    "text": {"type": "string"},
                    "category": {
                        "type": "string",
                        "enum": ["residuos", "emissoes", "ruido", "oleos_combustiveis", "riscos", "monitoramento", "geral"],
                    },
                    "deadline_days": {"type": "integer"},
                    "law_refs": {"type": "array", "items": {"type": "string"}},
                    "source_snippet": _SNIPPET,
                    "confidence": _CONFIDENCE,
                },
                "required": ["text", "source_snippet"],
            },
        },
        "waste_entries": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "month": {"type": "string"},
                    "year": {"type": "integer"},
                    "waste_type": {"type": "string"},
                    "quantity": {"type": "number"},
                    "unit": {"type": "string"},
                    "receiver": {"type": "string"},
                    "destination": {"type": "string"},
                    "cost": {"type": "number"},
                    "mtr_number": {"type": "string"},
                    "source_snippet": _SNIPPET,
                    "confidence": _CONFIDENCE,
                },
                "required": ["month", "waste_type", "source_snippet"],
            },
        },
        "suppliers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "razao_social": {"type": "string"},
                    "nome": {"type": "string"},
                    "cnpj": {"type": "string"},
                    "contato": {"type": "string"},
                    "email": {"type": "string"},
                    "telefone": {"type": "string"},
                    "endereco": {"type": "string"},
                    "tipo": {"type": "string"},
                    "source_snippet": _SNIPPET,
                    "confidence": _CONFIDENCE,
                },
                "required": ["source_snippet"],
            },
        },
    },
    "required": ["confidence", "_evidence_chars"],
}

INSTRUCTIONS = (
    "Você vai ler o documento anexado (PDF, planilha ou texto) e extrair apenas informações "
    "que estejam visíveis no documento.\n\n"
    "Retorne somente JSON válido no schema.\n\n"
    "Não invente nada: se um campo não existir no documento, omita-o.\n\n"
    "Para cada campo escalar preenchido, inclua em field_evidence um source_snippet literal "
    "(até 280 caracteres) copiado do documento. Cada item de conditions, waste_entries e "
    "suppliers deve ter seu próprio source_snippet literal e sua própria confidence.\n\n"
    "Nunca junte duas condicionantes, dois resíduos ou dois fornecedores em um único item.\n\n"
    "Preencha _evidence_chars com a soma dos comprimentos dos trechos copiados do documento "
    "usados como evidência.\n\n"
    "Preencha target_table com o destino mais provável: waste_logs (relatórios/manifestos de "
    "resíduos), suppliers (cadastro de fornecedores) ou licenses (licenças ambientais).\n\n"
    "Datas em YYYY-MM-DD. CNPJ com pontuação. Meses de waste_entries como escritos no documento.\n\n"
    "category é uma label curta (ex.: residuos, emissoes, ruido, oleos_combustiveis, riscos).\n\n"
    "Se o arquivo for ilegível (scan ruim) ou tiver pouco texto, retorne um JSON somente com "
    "confidence: 0.0 e _evidence_chars: 0."
)
