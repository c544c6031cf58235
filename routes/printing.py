import io
import json
from flask import Blueprint, request, jsonify, current_app, send_file

from config import ASSET_KEY_PREFIX, CODE_BASE_URL, ENABLE_QR_LOGO
from extensions import limiter
from services.printing.assets import StorageAssetResolver, decode_data_url
from services.printing.compositing import compose_template_code, composite_code
from services.printing.document import document_from_dict, print_spec_from_dict
from services.printing.errors import (
    AssetError,
    CompositeError,
    InvalidDocumentError,
    InvalidGeometryError,
    TemplateError,
    UnknownPageError,
)
from services.printing.pipeline import export_document_pdf, export_page, store_composed
from services.printing.preflight import preflight_document
from services.printing.templates import get_template, list_templates, resolve_code_target
from services.specs import PRINT_SPEC_PRESETS, generate_print_spec_for_size, get_print_spec
from utils.print_preflight import PreflightError, preflight_element_from_dict, validate_print_spec
from utils.qr_image import LogoCodeGenerator, generate_code
from utils.storage import get_storage
from utils.units import Rect

printing_bp = Blueprint('printing', __name__, url_prefix='/api')

INVALID_DESIGN_MESSAGE = "Invalid design JSON. Required: printSpec, pages"


def _json_body():
    """Request JSON as a dict, or None when the body isn't a JSON object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _design_from(body):
    """The document lives under "design" (editor) or "document"; bare documents are accepted too."""
    if body is None:
        raise InvalidDocumentError(INVALID_DESIGN_MESSAGE)
    design = body.get("design", body.get("document"))
    if design is None and "pages" in body:
        design = body
    if not isinstance(design, dict):
        raise InvalidDocumentError(INVALID_DESIGN_MESSAGE)
    return document_from_dict(design)


def _preflight_failed(e: PreflightError):
    return jsonify({
        "error": "Preflight check failed",
        "errors": e.result.errors,
        "warnings": e.result.warnings,
    }), 400


def _parse_rect(raw, field):
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidDocumentError("must be JSON {x, y, width, height}", field=field)
    if not isinstance(raw, dict):
        raise InvalidDocumentError("must be an object {x, y, width, height}", field=field)
    try:
        return Rect(float(raw["x"]), float(raw["y"]), float(raw["width"]), float(raw["height"]))
    except (KeyError, TypeError, ValueError):
        raise InvalidDocumentError("must have numeric x, y, width, height", field=field)


def _asset_resolver():
    return StorageAssetResolver(get_storage(), key_prefix=ASSET_KEY_PREFIX)


def _code_payload(payload):
    # Relative paths ("/k/abc") resolve against the public base URL
    payload = str(payload)
    if payload.startswith("/"):
        return f"{CODE_BASE_URL}{payload}"
    return payload


# -----------------------------------------------------------------------------
# Export
# -----------------------------------------------------------------------------
@printing_bp.route("/export", methods=["POST"])
@limiter.limit("30 per minute")
def export_png():
    """
    Preflight + render one page to PNG.

    Request body:
      {design: DesignJSON, pageId?: "front", options?: {dpi?: 300, includeBleed?: true}}

    Returns the PNG; X-Export-Path carries where the file was stored.
    """
    body = _json_body()
    try:
        document = _design_from(body)
        page_id = str(body.get("pageId") or body.get("page_id") or "front")
        options = body.get("options") or {}
        result = export_page(
            document,
            page_id,
            dpi=options.get("dpi"),
            include_bleed=options.get("includeBleed", True) is not False,
            assets=_asset_resolver(),
        )
    except PreflightError as e:
        return _preflight_failed(e)
    except (InvalidDocumentError, InvalidGeometryError, UnknownPageError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"[Export] Error exporting PNG: {e}", exc_info=True)
        return jsonify({"error": str(e) or "Failed to export PNG"}), 500

    response = send_file(
        io.BytesIO(result.data),
        mimetype="image/png",
        as_attachment=True,
        download_name=result.filename,
    )
    if result.path:
        response.headers["X-Export-Path"] = result.path
    response.headers["X-Preflight-Warnings"] = str(len(result.warnings))
    return response


@printing_bp.route("/export/pdf", methods=["POST"])
@limiter.limit("10 per minute")
def export_pdf_route():
    """Preflight + every page into one print PDF (TrimBox/BleedBox set)."""
    body = _json_body()
    try:
        document = _design_from(body)
        options = body.get("options") or {}
        result = export_document_pdf(document, dpi=options.get("dpi"), assets=_asset_resolver())
    except PreflightError as e:
        return _preflight_failed(e)
    except (InvalidDocumentError, InvalidGeometryError, UnknownPageError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"[Export] Error exporting PDF: {e}", exc_info=True)
        return jsonify({"error": str(e) or "Failed to export PDF"}), 500

    response = send_file(
        io.BytesIO(result.data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=result.filename,
    )
    if result.path:
        response.headers["X-Export-Path"] = result.path
    return response


# -----------------------------------------------------------------------------
# Preflight
# -----------------------------------------------------------------------------
@printing_bp.route("/preflight", methods=["POST"])
def preflight():
    """
    Preflight only. Violations are a normal 200 response.

    Accepts either {design: DesignJSON} or editor state:
      {printSpec: {sides: [...]}, sides: {sideId: [{type, x, y, width, ...}]}}
    """
    body = _json_body()
    if body is None:
        return jsonify({"error": "JSON object body required"}), 400
    try:
        if "design" in body or "pages" in body:
            verdict = preflight_document(_design_from(body))
        else:
            side_states = body.get("sides") or {}
            if not isinstance(side_states, dict):
                raise InvalidDocumentError("must be an object of side id -> elements", field="sides")
            spec = print_spec_from_dict(body.get("printSpec"), page_ids=list(side_states))
            elements = {
                side_id: [preflight_element_from_dict(el) for el in (objs or [])]
                for side_id, objs in side_states.items()
            }
            verdict = validate_print_spec(spec, elements)
    except (InvalidDocumentError, InvalidGeometryError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(verdict.to_dict()), 200


# -----------------------------------------------------------------------------
# Code compositing
# -----------------------------------------------------------------------------
def _image_bytes(name, body):
    """Image from a multipart file, or a data URL / base64 string in the JSON body."""
    upload = request.files.get(name)
    if upload is not None:
        return upload.read()
    value = (body or {}).get(name) or request.form.get(name)
    if not value:
        return None
    if not isinstance(value, str):
        raise InvalidDocumentError("must be a data URL or base64 string", field=name)
    if not value.startswith("data:"):
        value = f"data:image/png;base64,{value}"
    return decode_data_url(value)


@printing_bp.route("/compose", methods=["POST"])
@limiter.limit("30 per minute")
def compose():
    """
    Composite a code onto a rendered design.

    Inputs (multipart or JSON):
      design: image (file / data URL / base64)
      code: image, or payload to generate one
      targetRect: {x, y, width, height} in design pixels
      or templateId (+ optional placement) to frame the code with a template
    """
    body = _json_body() if request.is_json else None
    if request.is_json and body is None:
        return jsonify({"error": "JSON object body required"}), 400
    fields = body if body is not None else request.form

    try:
        design = _image_bytes("design", body)
        if not design:
            raise InvalidDocumentError("is required", field="design")
        payload = fields.get("payload")
        if payload:
            payload = _code_payload(payload)
        template_id = fields.get("templateId")

        if template_id:
            if not payload:
                raise InvalidDocumentError("is required with templateId", field="payload")
            placement = fields.get("placement")
            generator = generate_code
            logo = _image_bytes("logo", body)
            if logo and ENABLE_QR_LOGO:
                generator = LogoCodeGenerator(logo)
            result = compose_template_code(
                design,
                get_template(template_id),
                payload,
                generator,
                placement=_parse_rect(placement, "placement") if placement else None,
            )
        else:
            target = _parse_rect(fields.get("targetRect"), "targetRect")
            code = _image_bytes("code", body)
            if not code and payload:
                code = generate_code(payload, max(1, int(round(min(target.width, target.height)))))
            result = composite_code(design, code, target)

        data = result.to_png()
        key = store_composed(data)
    except TemplateError as e:
        return jsonify({"error": str(e)}), 404
    except (CompositeError, InvalidDocumentError, AssetError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"[Compose] Error compositing code: {e}", exc_info=True)
        return jsonify({"error": str(e) or "Failed to compose"}), 500

    response = send_file(io.BytesIO(data), mimetype="image/png", download_name="composed.png")
    response.headers["X-Export-Path"] = key
    return response


# -----------------------------------------------------------------------------
# Templates & print specs
# -----------------------------------------------------------------------------
@printing_bp.route("/templates", methods=["GET"])
def templates_index():
    return jsonify({"templates": [t.to_dict() for t in list_templates()]}), 200


@printing_bp.route("/templates/<template_id>", methods=["GET"])
def template_detail(template_id):
    try:
        return jsonify(get_template(template_id).to_dict()), 200
    except TemplateError as e:
        return jsonify({"error": str(e)}), 404


@printing_bp.route("/templates/<template_id>/code-target", methods=["POST"])
def template_code_target(template_id):
    """Resolve where the code goes for a template placed at {placement}."""
    body = _json_body()
    try:
        template = get_template(template_id)
        placement = _parse_rect((body or {}).get("placement"), "placement")
    except TemplateError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidDocumentError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"templateId": template.id, "targetRect": resolve_code_target(template, placement).to_dict()}), 200


@printing_bp.route("/print-specs", methods=["GET"])
def print_specs_index():
    return jsonify({"specs": {spec_id: spec.to_dict() for spec_id, spec in PRINT_SPEC_PRESETS.items()}}), 200


@printing_bp.route("/print-specs/<spec_id>", methods=["GET"])
def print_spec_detail(spec_id):
    spec = get_print_spec(spec_id)
    if spec is None:
        return jsonify({"error": f"Unknown print spec: {spec_id}"}), 404
    return jsonify(spec.to_dict()), 200


@printing_bp.route("/print-specs/generate", methods=["POST"])
def print_spec_generate():
    """Body: {productType, sizeId, orientation?}."""
    body = _json_body() or {}
    try:
        spec = generate_print_spec_for_size(
            body.get("productType", ""),
            body.get("sizeId", ""),
            orientation=body.get("orientation", "portrait"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(spec.to_dict()), 200
