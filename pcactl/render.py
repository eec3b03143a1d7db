import json

import yaml

# long PEM fields are summarized in table output
_PEM_FIELDS = ("certificate", "certificate_chain", "certificate_signing_request")


def fmt_table(rows):
    if not rows:
        return ""
    widths = [max(len(str(c)) for c in col) for col in zip(*rows)]
    def line(cells): return "  ".join(str(c).ljust(w) for c, w in zip(cells, widths))
    out = [line(rows[0]), "  ".join("-"*w for w in widths)]
    out += [line(r) for r in rows[1:]]
    return "\n".join(out)


def _cell(key, value):
    if key in _PEM_FIELDS:
        return f"<{len(value)} bytes>" if value else ""
    if isinstance(value, dict):
        return ",".join(f"{k}={v}" for k, v in sorted(value.items()))
    return "" if value is None else str(value)


def doc_rows(doc: dict):
    rows = [["FIELD", "VALUE"]]
    for k, v in doc.items():
        if k in ("certificate_authority_configuration", "revocation_configuration") and isinstance(v, dict):
            for sk, sv in v.items():
                rows.append([f"{k}.{sk}", _cell(sk, sv)])
            continue
        rows.append([k, _cell(k, v)])
    return rows


def output(doc, outfmt):
    if outfmt == "yaml":
        print(yaml.safe_dump(doc, sort_keys=False))
    elif outfmt == "table" and isinstance(doc, dict):
        print(fmt_table(doc_rows(doc)))
    else:
        print(json.dumps(doc, indent=2))
