# widgets.py
import logging
import threading
import tkinter as tk
from typing import Callable, Optional

import ttkbootstrap as ttk

logger = logging.getLogger(__name__)

TOAST_STYLES = {"success": "success", "error": "danger", "info": "info"}
TOAST_ICONS = {"success": "✔", "error": "✖", "info": "ℹ"}

_live_toasts = []


def center_window(win, w: int = 1100, h: int = 700):
    try:
        win.update_idletasks()
        ws = win.winfo_screenwidth()
        hs = win.winfo_screenheight()
        x = (ws // 2) - (w // 2)
        y = (hs // 2) - (h // 2)
        win.geometry(f"{w}x{h}+{x}+{y}")
    except tk.TclError:
        pass


def safe_after(root, callback, delay: int = 1):
    try:
        root.after(delay, callback)
    except (tk.TclError, RuntimeError):
        # root already destroyed (RuntimeError when called off the main loop)
        logger.debug("Dropped callback; window is gone")


def on_main_thread(root, func: Callable) -> Callable:
    """Wrap func so calls from SDK threads are replayed on the Tk main loop."""

    def wrapper(*args, **kwargs):
        safe_after(root, lambda: func(*args, **kwargs))

    return wrapper


def _restack():
    offset = 60
    for toast in list(_live_toasts):
        try:
            x = toast.winfo_screenwidth() - toast.winfo_reqwidth() - 20
            y = toast.winfo_screenheight() - toast.winfo_reqheight() - offset
            toast.geometry(f"+{x}+{y}")
            offset += toast.winfo_reqheight() + 8
        except tk.TclError:
            _live_toasts.remove(toast)


def show_toast(parent, message: str, kind: str = "info", duration: int = 3000):
    try:
        toast = tk.Toplevel(parent)
    except tk.TclError:
        logger.info("Toast (%s): %s", kind, message)
        return
    toast.overrideredirect(True)
    toast.attributes("-topmost", True)
    style = TOAST_STYLES.get(kind, "info")
    frame = ttk.Frame(toast, padding=(12, 8), bootstyle=style)
    frame.pack()
    ttk.Label(
        frame,
        text=f"{TOAST_ICONS.get(kind, '')}  {message}",
        bootstyle=f"inverse-{style}",
    ).pack()
    toast.update_idletasks()
    _live_toasts.append(toast)
    _restack()

    def close():
        if toast in _live_toasts:
            _live_toasts.remove(toast)
        try:
            toast.destroy()
        except tk.TclError:
            pass
        _restack()

    toast.after(duration, close)


def show_loader(parent, text: str = "Please wait..."):
    try:
        loader = tk.Toplevel(parent)
    except tk.TclError:
        return None
    loader.title("")
    loader.geometry("320x110")
    loader.resizable(False, False)
    loader.attributes("-topmost", True)
    loader.grab_set()
    frm = ttk.Frame(loader, padding=12)
    frm.pack(fill="both", expand=True)
    ttk.Label(frm, text=text).pack(pady=(0, 8))
    pb = ttk.Progressbar(frm, mode="indeterminate", bootstyle="info")
    pb.pack(fill="x")
    pb.start(10)
    loader.update()
    return loader


def close_loader(loader):
    if loader:
        try:
            loader.destroy()
        except tk.TclError:
            pass


def safe_run_in_thread(root, source_win: Optional[tk.Misc], func, on_done=None):
    """
    Run func() in background, callback on main thread via root.after.
    Skips callback if source window is destroyed.
    """

    def worker():
        res = None
        exc = None
        try:
            res = func()
        except Exception as e:
            exc = e

        def cb():
            if source_win is not None:
                try:
                    if not source_win.winfo_exists():
                        return
                except tk.TclError:
                    return
            if on_done:
                try:
                    on_done(res, exc)
                except Exception:
                    logger.exception("Error in on_done")

        safe_after(root, cb)

    threading.Thread(target=worker, daemon=True).start()
