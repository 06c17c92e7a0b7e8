import logging
import os
from datetime import datetime

from flask import Flask, jsonify, request

from contract_calc.data_models import ContractType
from contract_calc.engine import calculate_emi, generate_schedule
from contract_calc.execution import calculate_type_outflow, execute_month, generate_projection
from contract_calc.serialization import (
    contracts_from_payload,
    loan_summary_to_dict,
    projection_to_dict,
    snapshot_to_dict,
)
from contract_calc.utils import InvalidInputError, parse_date, parse_year_month, to_decimal
from contract_calc_web.snapshot_store import create_store_from_env

logger = logging.getLogger(__name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return data


def _field(data: dict, key: str):
    if data.get(key) is None:
        raise InvalidInputError(f"Missing required field: {key}")
    return data[key]


def _int_field(data: dict, key: str, default=None) -> int:
    value = data.get(key, default)
    if value is None:
        raise InvalidInputError(f"Missing required field: {key}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Field {key} must be an integer") from exc


def _period(data: dict, key: str):
    """Read a period either as ``"YYYY-MM"`` or as separate month/year fields."""
    if data.get(key):
        first = parse_year_month(str(data[key]))
        return first.month, first.year
    return _int_field(data, "month"), _int_field(data, "year")


def create_app(config=None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["SNAPSHOT_DATABASE_URL"] = os.environ.get("SNAPSHOT_DATABASE_URL")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    if config:
        app.config.update(config)

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    snapshot_store = create_store_from_env(app.config["SNAPSHOT_DATABASE_URL"])
    app.extensions["snapshot_store"] = snapshot_store

    @app.errorhandler(InvalidInputError)
    def handle_invalid_input(exc):
        logger.info("Rejected request to %s: %s", request.path, exc)
        return jsonify({"error": str(exc)}), 400

    @app.post("/api/emi")
    def emi():
        data = _json_body()
        value = calculate_emi(
            to_decimal(_field(data, "principal")),
            to_decimal(data.get("rate", 0)),
            _int_field(data, "term"),
        )
        return jsonify({"emi": str(value)})

    @app.post("/api/schedule")
    def schedule():
        data = _json_body()
        principal = to_decimal(_field(data, "principal"))
        rate = to_decimal(data.get("rate", 0))
        term = _int_field(data, "term")
        installment = data.get("emi")
        installment = to_decimal(installment) if installment is not None else calculate_emi(principal, rate, term)
        summary = generate_schedule(
            principal, rate, term, installment, parse_date(str(_field(data, "start_date")))
        )
        return jsonify(loan_summary_to_dict(summary))

    @app.post("/api/month")
    def month():
        data = _json_body()
        month_value, year_value = _period(data, "period")
        snapshot = execute_month(
            contracts_from_payload(data.get("contracts", [])),
            month_value,
            year_value,
            total_income=to_decimal(data.get("income", 0)),
            generated_at=datetime.now(),
        )
        if data.get("save"):
            snapshot_store.save_snapshot(snapshot)
            logger.info("Saved canonical snapshot for %s", snapshot.display_month)
        return jsonify(snapshot_to_dict(snapshot))

    @app.post("/api/projection")
    def projection():
        data = _json_body()
        month_value, year_value = _period(data, "start")
        result = generate_projection(
            contracts_from_payload(data.get("contracts", [])),
            month_value,
            year_value,
            _int_field(data, "months", 12),
            monthly_income=to_decimal(data.get("income", 0)),
            generated_at=datetime.now(),
        )
        return jsonify(projection_to_dict(result))

    @app.post("/api/outflow")
    def outflow():
        data = _json_body()
        month_value, year_value = _period(data, "start")
        contract_type = ContractType.parse(str(_field(data, "type")))
        total = calculate_type_outflow(
            contracts_from_payload(data.get("contracts", [])),
            contract_type,
            month_value,
            year_value,
            _int_field(data, "months", 12),
        )
        return jsonify({"type": contract_type.value, "total": str(total)})

    @app.get("/api/snapshots")
    def list_snapshots():
        return jsonify([snapshot_to_dict(s) for s in snapshot_store.list_snapshots()])

    @app.get("/api/snapshots/<int:year>/<int:month>")
    def get_snapshot(year: int, month: int):
        snapshot = snapshot_store.get_snapshot(month, year)
        if snapshot is None:
            return jsonify({"error": f"No snapshot saved for {year}-{month:02d}"}), 404
        return jsonify(snapshot_to_dict(snapshot))

    @app.delete("/api/snapshots/<int:year>/<int:month>")
    def delete_snapshot(year: int, month: int):
        if not snapshot_store.delete_snapshot(month, year):
            return jsonify({"error": f"No snapshot saved for {year}-{month:02d}"}), 404
        return "", 204

    return app


if __name__ == "__main__":
    print("Starting contract calculator API...")
    create_app().run(debug=True)
