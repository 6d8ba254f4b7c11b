import threading

# libsane may only be initialised once per process
sane_lock = threading.Lock()
active = None
busy_devices: set[bytes] = set()
