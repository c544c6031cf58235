import json
import click
from flask import Flask
from config import SECRET_KEY, MAX_CONTENT_LENGTH, RATELIMIT_ENABLED, STORAGE_BACKEND, DEFAULT_DPI, DEBUG


def create_app(test_config=None):
    app = Flask(__name__)

    app.config['SECRET_KEY'] = SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH
    app.config['RATELIMIT_ENABLED'] = RATELIMIT_ENABLED

    # Apply Test Config Overrides
    if test_config:
        app.config.update(test_config)

    # Setup Structured Logging
    from utils.logger import setup_logger
    setup_logger(app)

    # Scan fonts once, before any worker thread renders
    from services.printing.fonts import register_fonts
    register_fonts()

    # No database behind the render engine; report the configured storage backend
    @app.route("/healthz")
    def healthz():
        return {"status": "ok", "storage": STORAGE_BACKEND}, 200

    # Simple ping endpoint for Docker health checks
    @app.route("/ping")
    def ping():
        return {"status": "ok"}, 200

    # Extensions
    from extensions import limiter
    limiter.init_app(app)
    app.limiter = limiter

    # Blueprints
    from routes.printing import printing_bp
    app.register_blueprint(printing_bp)

    # CLI Commands
    @app.cli.command("render-page")
    @click.argument("design_json", type=click.Path(exists=True, dir_okay=False))
    @click.argument("page_id")
    @click.option("--out", "out_path", default=None, help="Output PNG path (default: export-<page>.png)")
    @click.option("--dpi", type=int, default=None, help=f"Override the document DPI (default {DEFAULT_DPI}).")
    @click.option("--no-bleed", is_flag=True, help="Render the trim only.")
    def render_page_cmd(design_json, page_id, out_path, dpi, no_bleed):
        """Preflight and render one page of a design JSON file."""
        from services.printing.document import document_from_dict
        from services.printing.preflight import preflight_document
        from services.printing.render import render

        with open(design_json, "r", encoding="utf-8") as f:
            document = document_from_dict(json.load(f))

        verdict = preflight_document(document)
        for warning in verdict.warnings:
            click.echo(f"WARNING: {warning}")
        if not verdict.is_valid:
            for error in verdict.errors:
                click.echo(f"ERROR: {error}", err=True)
            raise click.ClickException("Preflight check failed")

        raster = render(document, page_id, dpi=dpi, include_bleed=not no_bleed)
        out_path = out_path or f"export-{page_id}.png"
        with open(out_path, "wb") as f:
            f.write(raster.to_png())
        click.echo(f"Wrote {out_path} ({raster.width}x{raster.height}px @ {raster.dpi}dpi)")

    return app


# WSGI Entry Point
app = create_app()

if __name__ == "__main__":
    app.run(host='0.0.0.0', debug=DEBUG)
