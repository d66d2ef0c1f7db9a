"""Web front end for provisioning and managing site instances."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from flask import Flask, Response, redirect, render_template, request

from . import bind, vm
from .logs import LogBroadcaster, format_event
from .provision import ProvisionError, delete_instance, provision_instance, rename_instance
from .state import InstanceStore

log = logging.getLogger(__name__)

PORT = 8081
_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def _error(message: str, status: int) -> Response:
    return Response(message + "\n", status=status, mimetype="text/plain")


def _home() -> Response:
    return redirect("/", code=303)


def create_app(
    store: InstanceStore | None = None,
    broadcaster: LogBroadcaster | None = None,
    template_folder: str | os.PathLike | None = None,
) -> Flask:
    """Build the web application over the given store and log broadcaster."""
    store = store if store is not None else InstanceStore()
    broadcaster = broadcaster if broadcaster is not None else LogBroadcaster()
    app = Flask(__name__, static_folder=None,
                template_folder=os.path.abspath(template_folder or "templates"))

    @app.route("/", defaults={"path": ""}, methods=_METHODS)
    @app.route("/<path:path>", methods=_METHODS)
    def dashboard(path: str) -> str:
        return render_template("index.html", instances=store.instances())

    @app.route("/provision", methods=_METHODS)
    def provision() -> Response:
        if request.method != "POST":
            return _home()
        hostname = request.values.get("hostname", "")
        if not hostname:
            return _error("El nombre de host es obligatorio", 400)
        upload = request.files.get("zipfile")
        if upload is None:
            broadcaster.log("[Provision] Error leyendo zip: archivo no enviado")
            return _error("Archivo zip requerido", 400)
        with tempfile.TemporaryDirectory() as workdir:
            zip_path = Path(workdir) / "site.zip"
            try:
                upload.save(zip_path)
            except OSError as exc:
                broadcaster.log(f"[Provision] Error escribiendo zip: {exc}")
                return _error("Error guardando zip", 500)
            broadcaster.log(f"[Provision] ZIP guardado en: {zip_path}")
            try:
                provision_instance(hostname, zip_path, store, broadcaster)
            except ProvisionError as exc:
                return _error(str(exc), exc.status)
        return _home()

    @app.route("/delete", methods=_METHODS)
    def delete() -> Response:
        delete_instance(request.values.get("hostname", ""), store, broadcaster)
        return _home()

    @app.route("/logs")
    def logs() -> Response:
        client = broadcaster.subscribe()

        def stream():
            try:
                while True:
                    yield format_event(client.get())
            finally:
                broadcaster.unsubscribe(client)

        response = Response(stream(), content_type="text/event-stream")
        response.headers["Cache-Control"] = "no-cache"
        response.headers["Connection"] = "keep-alive"
        response.call_on_close(lambda: broadcaster.unsubscribe(client))
        return response

    @app.route("/zone", methods=_METHODS)
    def zone() -> Response:
        try:
            return Response(bind.read_zone(), mimetype="text/plain")
        except bind.DNSError as exc:
            return _error(f"Error leyendo zona DNS: {exc}", 500)

    @app.route("/startns", methods=_METHODS)
    def start_ns() -> Response:
        if request.method != "POST":
            return _home()
        try:
            vm.start_vm("ns")
        except vm.VBoxError as exc:
            return _error(str(exc), 500)
        return _home()

    @app.route("/rename", methods=_METHODS)
    def rename() -> Response:
        if request.method != "POST":
            return _home()
        try:
            rename_instance(request.values.get("old_hostname", ""),
                            request.values.get("new_hostname", ""), store, broadcaster)
        except ProvisionError as exc:
            return _error(str(exc), exc.status)
        return Response(status=200)

    return app


def main(argv: list[str] | None = None) -> int:
    """Run the web server on port 8081."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    log.info("Servidor corriendo en http://localhost:%d", PORT)
    create_app().run(host="0.0.0.0", port=PORT, threaded=True)
    return 0