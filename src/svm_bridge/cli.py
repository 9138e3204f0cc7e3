from __future__ import annotations

import argparse
import json
import math
from pathlib import Path
from typing import Any, Dict

import numpy as np
from sklearn.metrics import accuracy_score, mean_squared_error

from .api import cross_validation, predict, predict_proba, train
from .data import load_csv, save_matrix
from .errors import InvalidModelError, ModelIOError
from .params import CLASSIFICATION_TYPES, SvmType, decode_parameter, encode_parameter
from .persistence import load_svm_model, save_svm_model
from .utils.audit_log import AuditLogConfig, AuditLogger
from .utils.runtime_config import load_runtime_config

# CLI flag -> parameter key
PARAMETER_FLAGS = {
    "svm_type": "svm_type",
    "kernel": "kernel_type",
    "c": "C",
    "gamma": "gamma",
    "nu": "nu",
    "epsilon": "p",
    "degree": "degree",
    "coef0": "coef0",
    "probability": "probability",
}


def _add_common_args(parser: argparse.ArgumentParser):
    parser.add_argument("--data", required=True, help="CSV data path")
    parser.add_argument("--target-col", type=int, default=-1, help="Target column index")
    parser.add_argument("--config", default="config.toml", help="Runtime config path")


def _add_parameter_args(parser: argparse.ArgumentParser):
    parser.add_argument("--svm-type", help="c_svc, nu_svc, one_class, epsilon_svr or nu_svr")
    parser.add_argument("--kernel", help="linear, poly, rbf, sigmoid or precomputed")
    parser.add_argument("--c", type=float)
    parser.add_argument("--gamma", type=float)
    parser.add_argument("--nu", type=float)
    parser.add_argument("--epsilon", type=float, help="Epsilon of the SVR loss")
    parser.add_argument("--degree", type=int)
    parser.add_argument("--coef0", type=float)
    parser.add_argument("--probability", action="store_true", default=None)
    parser.add_argument("--verbose", action="store_true", help="Show LIBSVM training output")


def _resolve_parameters(args, config: Dict[str, Any]) -> Dict[str, Any]:
    """Config `[parameters]` overridden by explicit flags, normalized."""
    mapping = dict(config.get("parameters", {}))
    for flag, key in PARAMETER_FLAGS.items():
        value = getattr(args, flag, None)
        if value is not None:
            mapping[key] = value
    with decode_parameter(mapping) as native_param:
        return encode_parameter(native_param)


def _metric_payload(svm_type: int, y: np.ndarray, preds: np.ndarray) -> Dict[str, Any]:
    name = SvmType(int(svm_type)).name
    if svm_type in CLASSIFICATION_TYPES:
        metric = accuracy_score(y, preds)
        return {"svm_type": name, "metric": "accuracy", "value": float(metric)}
    if svm_type == SvmType.ONE_CLASS:
        # One-class predictions are +1 for inliers and -1 for outliers.
        metric = accuracy_score(np.ones_like(preds), preds)
        return {"svm_type": name, "metric": "inlier_rate", "value": float(metric)}
    rmse = math.sqrt(mean_squared_error(y, preds))
    return {"svm_type": name, "metric": "rmse", "value": float(rmse)}


def _verbose(args, config: Dict[str, Any]) -> bool:
    return bool(getattr(args, "verbose", False)) or bool(config["engine"]["verbose"])


def _load(model_path: str):
    param, model = load_svm_model(model_path)
    if model is None:
        raise ModelIOError(action="load", path=model_path)
    return param, model


def _format_row(row) -> str:
    values = np.atleast_1d(row)
    return ",".join(f"{float(v):.10g}" for v in values)


def cmd_train(args, config: Dict[str, Any], logger: AuditLogger) -> Dict[str, Any]:
    x, y = load_csv(args.data, args.target_col)
    params = _resolve_parameters(args, config)
    logger.log(
        "train.started",
        {"samples": logger.array_meta(x), "targets": logger.array_meta(y), "param": params},
    )

    model = train(x, y, params, verbose=_verbose(args, config))
    model_path = Path(args.model)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    if not save_svm_model(str(model_path), params, model):
        raise ModelIOError(action="save", path=str(model_path))

    preds = predict(x, params, model)
    payload = _metric_payload(params["svm_type"], y, preds)
    print(json.dumps(payload, ensure_ascii=True))
    logger.log(
        "train.completed",
        {**payload, "model": str(model_path), "nr_class": model["nr_class"], "n_sv": model["l"]},
    )
    return payload


def cmd_cv(args, config: Dict[str, Any], logger: AuditLogger) -> Dict[str, Any]:
    x, y = load_csv(args.data, args.target_col)
    params = _resolve_parameters(args, config)
    folds = args.folds if args.folds is not None else config["cross_validation"]["folds"]
    logger.log(
        "cv.started",
        {"samples": logger.array_meta(x), "folds": folds, "param": params},
    )

    preds = cross_validation(x, y, params, folds, verbose=_verbose(args, config))
    payload = _metric_payload(params["svm_type"], y, preds)
    payload["folds"] = int(folds)
    print(json.dumps(payload, ensure_ascii=True))
    logger.log("cv.completed", payload)
    return payload


def cmd_predict(args, config: Dict[str, Any], logger: AuditLogger) -> Dict[str, Any]:
    x, _ = load_csv(args.data, args.target_col)
    params, model = _load(args.model)
    if args.proba:
        values = predict_proba(x, params, model)
        if values is None:
            raise InvalidModelError(
                "Model has no probability information; train it with --probability."
            )
    else:
        values = predict(x, params, model)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        save_matrix(str(output_path), values)
    else:
        print("\n".join(_format_row(row) for row in values))

    summary = {"model": args.model, "n_samples": int(x.shape[0]), "proba": bool(args.proba)}
    logger.log("predict.completed", {**summary, "values": logger.array_meta(values)})
    return summary


def cmd_evaluate(args, config: Dict[str, Any], logger: AuditLogger) -> Dict[str, Any]:
    x, y = load_csv(args.data, args.target_col)
    params, model = _load(args.model)
    preds = predict(x, params, model)

    payload = _metric_payload(params["svm_type"], y, preds)
    print(json.dumps(payload, ensure_ascii=True))
    logger.log("evaluate.completed", {**payload, "model": args.model})
    return payload


def build_parser():
    parser = argparse.ArgumentParser(description="LIBSVM command-line front end")
    sub = parser.add_subparsers(dest="command", required=True)

    train_cmd = sub.add_parser("train", help="Train a model and save it as a LIBSVM model file")
    _add_common_args(train_cmd)
    train_cmd.add_argument("--model", required=True, help="Model file path")
    _add_parameter_args(train_cmd)
    train_cmd.set_defaults(func=cmd_train)

    cv_cmd = sub.add_parser("cv", help="Score n-fold cross-validated predictions")
    _add_common_args(cv_cmd)
    cv_cmd.add_argument("--folds", type=int, help="Number of folds (default from config)")
    _add_parameter_args(cv_cmd)
    cv_cmd.set_defaults(func=cmd_cv)

    predict_cmd = sub.add_parser("predict", help="Run prediction")
    _add_common_args(predict_cmd)
    predict_cmd.add_argument("--model", required=True, help="Model file path")
    predict_cmd.add_argument("--output", help="Optional prediction output CSV path")
    predict_cmd.add_argument(
        "--proba", action="store_true", help="Output class probabilities instead of labels"
    )
    predict_cmd.set_defaults(func=cmd_predict)

    evaluate = sub.add_parser("evaluate", help="Evaluate an existing model")
    _add_common_args(evaluate)
    evaluate.add_argument("--model", required=True, help="Model file path")
    evaluate.set_defaults(func=cmd_evaluate)

    return parser


def run(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_runtime_config(args.config)
    logger = AuditLogger(AuditLogConfig.from_runtime_config(config))
    logger.log("run.started", {"command": args.command, "data": args.data})
    try:
        summary = args.func(args, config, logger)
    except Exception as exc:
        logger.finalize(
            status="failed",
            summary={"command": args.command, "error_type": type(exc).__name__, "error": str(exc)},
        )
        raise
    logger.finalize(status="success", summary={"command": args.command, **summary})
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
