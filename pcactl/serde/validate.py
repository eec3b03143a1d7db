import json, importlib.resources as pkg
from jsonschema import validate
from jsonschema.exceptions import ValidationError as SchemaError

from ..errors import ValidationError


def _schema(version: str, kind: str) -> dict:
    # kind in {"authority"}
    try:
        res = pkg.files(f"pcactl.schemas.{version}").joinpath(f"{kind}.schema.json")
    except ModuleNotFoundError as e:
        raise ValidationError(f"unsupported document version {version!r}", operation="validate") from e
    with res.open("r", encoding="utf-8") as f:
        return json.load(f)


def validate_doc(doc: dict, version: str, kind: str):
    schema = _schema(version, kind)
    try:
        validate(instance=doc, schema=schema)
    except SchemaError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ValidationError(f"{kind} document invalid at {where}: {e.message}", operation="validate") from e
