import random
import time

import requests

# --- 1. CONFIGURACIÓN DEL DISPOSITIVO ---
DEVICE_ID = "REEMPLAZAR_CON_ID_DE_FIRESTORE"   # ¡Debe existir en la colección devices!
API_URL = "http://localhost:8000/api/v1/ingest/status"

# Probabilidad de que el sensor cambie de estado en cada ciclo
FLIP_PROBABILITY = 0.2
INTERVAL_SECONDS = 10

# --- 2. ESTADO INTERNO ---
device_state = {"online": True}


def send_status_loop():
    """Bucle infinito que reporta el estado como lo haría el ESP8266"""
    print(f"🚀 [HTTP] Simulando dispositivo {DEVICE_ID}...")

    while True:
        if random.random() < FLIP_PROBABILITY:
            device_state["online"] = not device_state["online"]

        payload = {
            "deviceId": DEVICE_ID,
            "status": "online" if device_state["online"] else "offline",
        }

        try:
            r = requests.post(API_URL, json=payload, timeout=2)
            if r.status_code == 200:
                status_icon = "🟢" if device_state["online"] else "🔴"
                print(f"{status_icon} [DATA] Enviado: {payload['status']}", flush=True)
            else:
                print(f"⚠️ [HTTP] Error {r.status_code}: {r.text}", flush=True)
        except requests.RequestException as e:
            print(f"❌ Error de conexión HTTP: {e}", flush=True)

        time.sleep(INTERVAL_SECONDS)


# --- MAIN ---
if __name__ == "__main__":
    try:
        send_status_loop()
    except KeyboardInterrupt:
        print("\n🛑 Simulador detenido")
