import pandas as pd
import pytest

from pharos import import_xlsx
from pharos.import_xlsx import build_items, detect_header_row, find_col, parse_amount_series


def test_detect_header_row_skips_bank_preamble():
    raw = pd.DataFrame([
        ["Banco Exemplo", None, None],
        ["Extrato de conta", None, None],
        ["Data", "Histórico", "Valor"],
        ["03/02/2026", "Mercado", "120.50"],
    ])

    assert detect_header_row(raw) == 2


def test_detect_header_row_none_when_missing():
    raw = pd.DataFrame([["a", "b"], ["c", "d"]])

    assert detect_header_row(raw) is None


def test_find_col_matches_keywords():
    df = pd.DataFrame(columns=["Fecha Operación", "Descripción", "Importe MXN"])

    assert find_col(df, import_xlsx.DATE_KEYS) == "Fecha Operación"
    assert find_col(df, import_xlsx.AMT_KEYS) == "Importe MXN"
    assert find_col(df, ["saldo"]) is None


def test_parse_amount_series():
    out = parse_amount_series(pd.Series(["$1,234.56", "R$ 10", "-7.5", "n/a", 3]))

    assert out.tolist()[:3] == [1234.56, 10.0, -7.5]
    assert pd.isna(out.iloc[3])
    assert out.iloc[4] == 3.0


def test_build_items():
    df = pd.DataFrame({
        "Fecha": ["03/02/2026", "04/02/2026", "05/02/2026", "nope", "06/02/2026"],
        "Descripción": [" Supermercado ", "Devolución", "Cero", "Mala fecha", None],
        "Importe": ["$1,200.00", "-50", "0", "10", "5"],
    })

    items = build_items(df, category_id=4, account_id=2, pending=True)

    assert items == [
        {
            "type": "expense", "amount": "1200.00", "description": "Supermercado",
            "date": "2026-02-03", "categoryId": 4, "accountId": 2, "creditCardId": None,
            "status": "pending",
        },
        {
            "type": "income", "amount": "50.00", "description": "Devolución",
            "date": "2026-02-04", "categoryId": 4, "accountId": 2, "creditCardId": None,
            "status": "pending",
        },
    ]


def test_build_items_missing_columns():
    with pytest.raises(ValueError):
        build_items(pd.DataFrame({"Fecha": ["01/01/2026"], "Importe": [1]}), category_id=1)


def test_parse_args_requires_one_funding_source():
    args = import_xlsx.parse_args(["extrato.xlsx", "--card", "3", "--category", "9"])
    assert (args.card, args.account, args.pending) == (3, None, False)

    with pytest.raises(SystemExit):
        import_xlsx.parse_args(["extrato.xlsx", "--card", "3", "--account", "1", "--category", "9"])


def test_main_uploads_through_client(monkeypatch, tmp_path):
    path = tmp_path / "extrato.xlsx"
    path.write_bytes(b"")
    df = pd.DataFrame({"Data": ["01/03/2026"], "Histórico": ["Padaria"], "Valor": ["12.30"]})
    sent = []

    class RecordingClient:
        def __init__(self, base_url, token=None):
            self.token = token

        def create_transaction(self, payload):
            sent.append((self.token, payload))
            return {"id": 1}

    monkeypatch.setenv("PHAROS_TOKEN", "tok")
    monkeypatch.setattr(import_xlsx, "read_statement", lambda p: df)
    monkeypatch.setattr(import_xlsx, "PharosClient", RecordingClient)

    import_xlsx.main([str(path), "--account", "2", "--category", "5"])

    assert len(sent) == 1
    token, payload = sent[0]
    assert token == "tok"
    assert payload["description"] == "Padaria"
    assert payload["status"] == "confirmed"
    assert payload["date"] == "2026-03-01"


def test_main_without_token_exits(monkeypatch, tmp_path):
    monkeypatch.delenv("PHAROS_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        import_xlsx.main([str(tmp_path / "x.xlsx"), "--account", "2", "--category", "5"])
