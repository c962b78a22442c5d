# run_waitress.py
# Sirve SongStudio con Waitress (producción).
#   python run_waitress.py
# Host/puerto: HOST y PORT del entorno.

import os

from waitress import serve

from songstudio import create_app

if __name__ == "__main__":
    application = create_app()
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    print(f"[Waitress] Sirviendo en http://{host}:{port}")
    serve(application, listen=f"{host}:{port}", threads=8)
