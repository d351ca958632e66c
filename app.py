# app.py
"""
Campus Complaint Tracker desktop app (Cosmo theme)
Run: python app.py
Requires: pip install ttkbootstrap firebase-admin requests python-dotenv
"""
import logging
import tkinter as tk

import ttkbootstrap as ttk
from ttkbootstrap.scrolled import ScrolledFrame

import firebase_client
import router as views
from config import get_settings
from dashboard import render_admin, render_public, render_user
from errors import ComplaintTrackerError, Unauthenticated
from models import ALL, CATEGORIES, DEPARTMENTS, STATUSES, URGENCIES
from repository import FEED_ALL, FEED_MINE, ComplaintRepository, UserRepository
from router import ViewRouter
from session import SessionContext, SessionStore
from widgets import (
    center_window,
    close_loader,
    on_main_thread,
    safe_run_in_thread,
    show_loader,
    show_toast,
)

logger = logging.getLogger(__name__)

FONT_TITLE = ("Segoe UI", 16, "bold")
FONT_HEAD = ("Segoe UI", 12, "bold")
FONT_BODY = ("Segoe UI", 10)


# -----------------------
# Card / counter helpers
# -----------------------
def draw_counters(parent, labels):
    """labels: list of (key, caption). Returns {key: StringVar}."""
    row = ttk.Frame(parent)
    row.pack(fill="x", pady=6)
    values = {}
    for i, (key, caption) in enumerate(labels):
        card = ttk.Labelframe(row, text=caption, padding=10)
        card.grid(row=0, column=i, padx=6, sticky="nsew")
        var = tk.StringVar(value="...")
        ttk.Label(card, textvariable=var, font=("Segoe UI", 18, "bold")).pack()
        values[key] = var
        row.columnconfigure(i, weight=1)
    return values


def fill_counters(values, counters):
    for key, var in values.items():
        value = counters.get(key)
        if value is None:
            continue
        var.set(f"{value}%" if key == "rate" else str(value))


def draw_cards(container, rendered, on_resolve=None):
    for child in container.winfo_children():
        try:
            child.destroy()
        except tk.TclError:
            pass

    if not rendered.cards:
        ttk.Label(container, text=rendered.empty_message, bootstyle="secondary",
                  font=FONT_BODY).pack(anchor="w", pady=12)
        return

    for card in rendered.cards:
        box = ttk.Frame(container, padding=10, bootstyle="light")
        box.pack(fill="x", pady=4, padx=2)

        header = ttk.Frame(box, bootstyle="light")
        header.pack(fill="x")
        ttk.Label(header, text=card["category"], font=FONT_HEAD, bootstyle="inverse-light").pack(side="left")
        ttk.Label(
            header,
            text=f" {card['status']} ",
            bootstyle=f"inverse-{card['status_style']}",
        ).pack(side="right")

        ttk.Label(box, text=f"Location: {card['location']}", bootstyle="inverse-light",
                  font=FONT_BODY).pack(anchor="w", pady=(6, 0))
        ttk.Label(box, text=card["description"], wraplength=760, justify="left",
                  bootstyle="inverse-light", font=FONT_BODY).pack(anchor="w", pady=(2, 6))

        meta = ttk.Frame(box, bootstyle="light")
        meta.pack(fill="x")
        if "submitter_name" in card:
            ttk.Label(meta, text=f"👤 {card['submitter_name']}", bootstyle="inverse-light").pack(side="left", padx=(0, 12))
            ttk.Label(meta, text=f"🪪 {card['submitter_id']}", bootstyle="inverse-light").pack(side="left", padx=(0, 12))
        ttk.Label(meta, text=f"📅 {card['date']}", bootstyle="inverse-light").pack(side="left", padx=(0, 12))
        ttk.Label(
            meta,
            text=f"⚠ {card['urgency']}",
            bootstyle="inverse-danger" if card["high_urgency"] else "inverse-light",
        ).pack(side="left")

        if card["can_resolve"] and on_resolve:
            ttk.Button(
                box,
                text="✔ Mark Resolved",
                bootstyle="primary",
                command=lambda cid=card["id"]: on_resolve(cid),
            ).pack(anchor="e", pady=(8, 0))


def labelled_entry(parent, row, caption, show=None, width=40):
    ttk.Label(parent, text=caption, font=FONT_BODY).grid(row=row, column=0, sticky="w", pady=6)
    var = tk.StringVar()
    entry = ttk.Entry(parent, textvariable=var, width=width, show=show)
    entry.grid(row=row, column=1, sticky="w", pady=6)
    return var


def labelled_combo(parent, row, caption, values, initial):
    ttk.Label(parent, text=caption, font=FONT_BODY).grid(row=row, column=0, sticky="w", pady=6)
    var = tk.StringVar(value=initial)
    ttk.Combobox(parent, textvariable=var, values=list(values), state="readonly", width=28).grid(
        row=row, column=1, sticky="w", pady=6
    )
    return var


# -----------------------
# Main window
# -----------------------
class ComplaintTrackerApp:
    def __init__(self, root, session: SessionContext, complaints: ComplaintRepository,
                 users: UserRepository, settings):
        self.root = root
        self.session = session
        self.complaints = complaints
        self.users = users
        self.settings = settings

        self.frames = {}
        self.admin_cache = []
        self.user_cache = []
        self.user_count = None

        self.router = ViewRouter(on_menu_change=self._on_menu_change)
        self._build_topbar()
        self.body = ttk.Frame(root, padding=14)
        self.body.pack(fill="both", expand=True)

        self._build_home()
        self._build_public_dashboard()
        self._build_register()
        self._build_login(views.USER_LOGIN, as_admin=False)
        self._build_login(views.ADMIN_LOGIN, as_admin=True)
        self._build_submit()
        self._build_user_dashboard()
        self._build_admin_dashboard()

        session.add_listener(on_main_thread(root, self._on_auth_change))

    # ---------- plumbing ----------
    def toast(self, message, kind="info"):
        show_toast(self.root, message, kind, self.settings.toast_ms)

    def report(self, exc, fallback="Something went wrong. Please try again."):
        if isinstance(exc, ComplaintTrackerError):
            self.toast(str(exc), "error")
        else:
            logger.error("Unexpected error", exc_info=exc)
            self.toast(fallback, "error")

    def run(self, func, on_done, loading=None):
        """Run func off the Tk thread. With loading set, a modal loader covers the wait."""
        if not loading:
            safe_run_in_thread(self.root, self.root, func, on_done)
            return
        loader = show_loader(self.root, loading)

        def done(res, exc):
            close_loader(loader)
            on_done(res, exc)

        safe_run_in_thread(self.root, self.root, func, done)

    def _section(self, name, **hooks):
        frame = ttk.Frame(self.body)
        self.frames[name] = frame
        self.router.register(
            name,
            on_show=lambda: frame.pack(fill="both", expand=True),
            on_hide=frame.pack_forget,
            **hooks,
        )
        return frame

    # ---------- top bar & menu ----------
    def _build_topbar(self):
        top = ttk.Frame(self.root, padding=(12, 8), bootstyle="primary")
        top.pack(side="top", fill="x")
        ttk.Label(top, text="🎓 Campus Complaints", font=FONT_HEAD, bootstyle="inverse-primary").pack(side="left")

        ttk.Button(top, text="☰", bootstyle="primary", command=lambda: self.router.toggle_menu()).pack(side="right")
        for text, name in (
            ("My Complaints", views.USER_DASHBOARD),
            ("Submit", views.SUBMIT),
            ("Dashboard", views.DASHBOARD),
            ("Home", views.HOME),
        ):
            ttk.Button(top, text=text, bootstyle="primary",
                       command=lambda n=name: self.router.show(n)).pack(side="right", padx=2)

        self.user_label = ttk.Label(top, text="", bootstyle="inverse-primary")
        self.user_label.pack(side="right", padx=12)

        self.menu = ttk.Frame(self.root, padding=8, bootstyle="secondary")
        self.menu_buttons = {}
        for text, name in (
            ("Register", views.REGISTER),
            ("Student Login", views.USER_LOGIN),
            ("Admin Login", views.ADMIN_LOGIN),
            ("Admin Dashboard", views.ADMIN_DASHBOARD),
        ):
            btn = ttk.Button(self.menu, text=text, bootstyle="secondary",
                             command=lambda n=name: self.router.show(n))
            btn.pack(side="left", padx=4)
            self.menu_buttons[name] = btn
        self.logout_btn = ttk.Button(self.menu, text="Logout", bootstyle="danger", command=self.logout,
                                     state="disabled")
        self.logout_btn.pack(side="right", padx=4)

    def _on_menu_change(self, is_open):
        if is_open:
            self.menu.pack(side="top", fill="x", before=self.body)
        else:
            self.menu.pack_forget()

    def _on_auth_change(self, user):
        if user is None:
            self.user_label.config(text="")
            self.logout_btn.config(state="disabled")
            self.admin_cache = []
            self.user_cache = []
            self.user_count = None
            return
        role = "Admin" if self.session.is_admin else "Student"
        self.user_label.config(text=f"{user.get('name', '')} ({role})")
        self.logout_btn.config(state="normal")

    # ---------- home ----------
    def _build_home(self):
        f = self._section(views.HOME)
        ttk.Label(f, text="Campus Complaint Portal", font=("Segoe UI", 20, "bold")).pack(anchor="w", pady=(10, 6))
        ttk.Label(
            f,
            text="Report campus issues, follow their progress, and see how quickly they get resolved.",
            font=FONT_BODY,
        ).pack(anchor="w", pady=(0, 16))
        row = ttk.Frame(f)
        row.pack(anchor="w")
        ttk.Button(row, text="Submit a Complaint", bootstyle="primary",
                   command=lambda: self.router.show(views.SUBMIT)).pack(side="left", padx=(0, 8))
        ttk.Button(row, text="View Dashboard", bootstyle="info",
                   command=lambda: self.router.show(views.DASHBOARD)).pack(side="left", padx=(0, 8))
        ttk.Button(row, text="Register", bootstyle="success-outline",
                   command=lambda: self.router.show(views.REGISTER)).pack(side="left")

    # ---------- public dashboard ----------
    def _build_public_dashboard(self):
        f = self._section(views.DASHBOARD, refresh=self.refresh_public)
        ttk.Label(f, text="Public Dashboard", font=FONT_TITLE).pack(anchor="w", pady=(0, 8))
        self.public_counters = draw_counters(
            f, [("total", "Total"), ("resolved", "Resolved"), ("pending", "Pending"), ("rate", "Resolution Rate")]
        )
        bar = ttk.Frame(f)
        bar.pack(fill="x", pady=6)
        ttk.Label(bar, text="Status:").pack(side="left")
        self.public_filter = tk.StringVar(value=ALL)
        combo = ttk.Combobox(bar, textvariable=self.public_filter, values=[ALL, *STATUSES], state="readonly", width=14)
        combo.pack(side="left", padx=8)
        combo.bind("<<ComboboxSelected>>", lambda e: self.refresh_public())
        self.public_list = ScrolledFrame(f, autohide=True)
        self.public_list.pack(fill="both", expand=True)

    def refresh_public(self):
        status = self.public_filter.get()

        def done(res, exc):
            if exc:
                self.report(exc, "Error loading complaints")
                return
            rendered = render_public(res, status)
            fill_counters(self.public_counters, rendered.counters)
            draw_cards(self.public_list, rendered)

        self.run(self.complaints.fetch_all_once, done)

    # ---------- registration ----------
    def _build_register(self):
        f = self._section(views.REGISTER)
        ttk.Label(f, text="Student Registration", font=FONT_TITLE).pack(anchor="w", pady=(0, 12))
        form = ttk.Frame(f)
        form.pack(anchor="w")
        name = labelled_entry(form, 0, "Full Name")
        student_id = labelled_entry(form, 1, "Student ID")
        email = labelled_entry(form, 2, "Email")
        department = labelled_combo(form, 3, "Department", DEPARTMENTS, DEPARTMENTS[0])
        password = labelled_entry(form, 4, "Password", show="*")
        confirm = labelled_entry(form, 5, "Confirm Password", show="*")
        btn = ttk.Button(form, text="Register", bootstyle="success")
        btn.grid(row=6, column=1, sticky="e", pady=(12, 0))

        def submit():
            if password.get() != confirm.get():
                self.toast("Passwords do not match!", "error")
                return
            btn.config(state="disabled")

            def work():
                return self.session.register(
                    name.get(), student_id.get(), email.get(), password.get(), confirm.get(), department.get()
                )

            def done(_, exc):
                btn.config(state="normal")
                if exc:
                    self.report(exc)
                    return
                for var in (name, student_id, email, password, confirm):
                    var.set("")
                self.toast("Registration successful! Please login.", "success")
                self.router.show(views.USER_LOGIN)

            self.run(work, done, loading="Creating account...")

        btn.config(command=submit)

    # ---------- login ----------
    def _build_login(self, section, as_admin):
        f = self._section(section)
        title = "Admin Login" if as_admin else "Student Login"
        ttk.Label(f, text=title, font=FONT_TITLE).pack(anchor="w", pady=(0, 12))
        form = ttk.Frame(f)
        form.pack(anchor="w")
        email = labelled_entry(form, 0, "Email")
        password = labelled_entry(form, 1, "Password", show="*")
        btn = ttk.Button(form, text="Login", bootstyle="primary")
        btn.grid(row=2, column=1, sticky="e", pady=(12, 0))

        def submit():
            btn.config(state="disabled")

            def work():
                return self.session.login(email.get(), password.get(), as_admin=as_admin)

            def done(user, exc):
                btn.config(state="normal")
                if exc:
                    self.report(exc, "Invalid admin credentials!" if as_admin else "Invalid email or password!")
                    return
                email.set("")
                password.set("")
                if as_admin:
                    self.toast("Admin login successful!", "success")
                    self.router.show(views.ADMIN_DASHBOARD)
                else:
                    self.toast(f"Welcome back, {user.get('name', '')}!", "success")
                    self.router.show(views.USER_DASHBOARD)

            self.run(work, done, loading="Signing in...")

        btn.config(command=submit)

    def logout(self):
        self.session.logout()
        self.toast("Logged out successfully!", "info")
        self.router.show(views.HOME)

    # ---------- submit complaint ----------
    def _build_submit(self):
        f = self._section(views.SUBMIT)
        ttk.Label(f, text="Submit a Complaint", font=FONT_TITLE).pack(anchor="w", pady=(0, 12))
        form = ttk.Frame(f)
        form.pack(anchor="w", fill="x")
        category = labelled_combo(form, 0, "Category", CATEGORIES, CATEGORIES[0])
        location = labelled_entry(form, 1, "Location", width=60)
        urgency = labelled_combo(form, 2, "Urgency", URGENCIES, "medium")
        ttk.Label(form, text="Description", font=FONT_BODY).grid(row=3, column=0, sticky="nw", pady=6)
        desc = tk.Text(form, width=72, height=8, wrap="word")
        desc.grid(row=3, column=1, sticky="w", pady=6)
        btn = ttk.Button(form, text="Submit Complaint", bootstyle="primary")
        btn.grid(row=4, column=1, sticky="e", pady=(8, 0))

        def submit():
            if not self.session.is_authenticated:
                self.toast("Please login first!", "error")
                self.router.show(views.USER_LOGIN)
                return
            description = desc.get("1.0", "end").strip()
            btn.config(state="disabled")

            def work():
                return self.complaints.submit(
                    self.session, category.get(), location.get(), description, urgency.get()
                )

            def done(_, exc):
                btn.config(state="normal")
                if isinstance(exc, Unauthenticated):
                    self.report(exc)
                    self.router.show(views.USER_LOGIN)
                    return
                if exc:
                    self.report(exc, "Error submitting complaint")
                    return
                location.set("")
                urgency.set("medium")
                desc.delete("1.0", "end")
                self.toast("Complaint submitted successfully!", "success")
                self.router.show(views.USER_DASHBOARD)

            self.run(work, done, loading="Submitting complaint...")

        btn.config(command=submit)

    # ---------- user dashboard ----------
    def _build_user_dashboard(self):
        f = self._section(
            views.USER_DASHBOARD,
            refresh=self.refresh_user,
            on_leave=lambda: self.complaints.cancel(FEED_MINE),
        )
        self.user_heading = ttk.Label(f, text="My Complaints", font=FONT_TITLE)
        self.user_heading.pack(anchor="w")
        self.user_info = ttk.Label(f, text="", bootstyle="secondary")
        self.user_info.pack(anchor="w", pady=(0, 8))
        self.user_counters = draw_counters(
            f, [("total", "Total"), ("resolved", "Resolved"), ("pending", "Pending"), ("rate", "Resolution Rate")]
        )
        bar = ttk.Frame(f)
        bar.pack(fill="x", pady=6)
        ttk.Label(bar, text="Status:").pack(side="left")
        self.user_filter = tk.StringVar(value=ALL)
        combo = ttk.Combobox(bar, textvariable=self.user_filter, values=[ALL, *STATUSES], state="readonly", width=14)
        combo.pack(side="left", padx=8)
        combo.bind("<<ComboboxSelected>>", lambda e: self.render_user_list())
        self.user_list = ScrolledFrame(f, autohide=True)
        self.user_list.pack(fill="both", expand=True)

    def refresh_user(self):
        user = self.session.user
        if user is None:
            self.toast("Please login first!", "error")
            self.router.show(views.USER_LOGIN)
            return
        self.user_heading.config(text=user.get("name", "My Complaints"))
        self.user_info.config(text=f"{user.get('studentId', '')} - {user.get('department', '')}")

        def on_snapshot(records):
            self.user_cache = records
            self.render_user_list()

        try:
            self.complaints.subscribe_mine(
                user["uid"],
                on_main_thread(self.root, on_snapshot),
                on_main_thread(self.root, lambda e: self.report(e, "Error loading complaints")),
            )
        except ComplaintTrackerError as e:
            self.report(e)

    def render_user_list(self):
        rendered = render_user(self.user_cache, self.user_filter.get())
        fill_counters(self.user_counters, rendered.counters)
        draw_cards(self.user_list, rendered)

    # ---------- admin dashboard ----------
    def _build_admin_dashboard(self):
        f = self._section(
            views.ADMIN_DASHBOARD,
            refresh=self.refresh_admin,
            on_leave=lambda: self.complaints.cancel(FEED_ALL),
        )
        ttk.Label(f, text="Admin Dashboard", font=FONT_TITLE).pack(anchor="w", pady=(0, 8))
        self.admin_counters = draw_counters(
            f, [("total", "Total"), ("resolved", "Resolved"), ("pending", "Pending"), ("users", "Active Users")]
        )
        bar = ttk.Frame(f)
        bar.pack(fill="x", pady=6)
        ttk.Label(bar, text="Status:").pack(side="left")
        self.admin_status = tk.StringVar(value=ALL)
        status_combo = ttk.Combobox(bar, textvariable=self.admin_status, values=[ALL, *STATUSES],
                                    state="readonly", width=14)
        status_combo.pack(side="left", padx=8)
        ttk.Label(bar, text="Category:").pack(side="left", padx=(10, 0))
        self.admin_category = tk.StringVar(value=ALL)
        category_combo = ttk.Combobox(bar, textvariable=self.admin_category, values=[ALL, *CATEGORIES],
                                      state="readonly", width=16)
        category_combo.pack(side="left", padx=8)
        for combo in (status_combo, category_combo):
            combo.bind("<<ComboboxSelected>>", lambda e: self.filter_admin())
        self.admin_list = ScrolledFrame(f, autohide=True)
        self.admin_list.pack(fill="both", expand=True)

    def refresh_admin(self):
        if not self.session.is_admin:
            self.toast("Please login as an administrator.", "error")
            self.router.show(views.ADMIN_LOGIN)
            return

        def on_snapshot(records):
            # last snapshot wins; filtering always runs on the full list
            self.admin_cache = records
            self.filter_admin()
            self.run(self.users.count, on_count)

        def on_count(count, exc):
            if exc:
                self.report(exc)
                return
            self.user_count = count
            fill_counters(self.admin_counters, {"users": count})

        try:
            self.complaints.subscribe_all(
                on_main_thread(self.root, on_snapshot),
                on_main_thread(self.root, lambda e: self.report(e, "Error loading complaints")),
            )
        except ComplaintTrackerError as e:
            self.report(e)

    def filter_admin(self):
        rendered = render_admin(
            self.admin_cache, self.admin_status.get(), self.admin_category.get(), self.user_count
        )
        fill_counters(self.admin_counters, rendered.counters)
        draw_cards(self.admin_list, rendered, on_resolve=self.resolve)

    def resolve(self, complaint_id):
        def work():
            return self.complaints.resolve(self.session, complaint_id)

        def done(changed, exc):
            if exc:
                self.report(exc, "Error updating complaint")
                return
            if changed:
                self.toast("Complaint marked as resolved!", "success")
            else:
                self.toast("Complaint was already resolved.", "info")

        self.run(work, done)

    # ---------- start-up ----------
    def start(self):
        self.router.show(views.HOME)

        def done(user, exc):
            if exc:
                self.report(exc)
                return
            if user is None:
                return
            self.router.show(views.ADMIN_DASHBOARD if self.session.is_admin else views.USER_DASHBOARD)

        self.run(self.session.restore, done)


# -----------------------
# Entry point
# -----------------------
def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db = firebase_client.get_db()
    users = UserRepository(db)
    complaints = ComplaintRepository(db)
    store = None
    if settings.session_file and settings.session_key:
        store = SessionStore(settings.session_file, settings.encryption_key)
    elif settings.session_file:
        logger.warning("CAMPUS_SESSION_KEY is not set; sign-ins will not be remembered")
    session = SessionContext(firebase_client, users, complaints, store)

    root = ttk.Window(title="Campus Complaint Tracker", themename=settings.theme)
    center_window(root, 1150, 760)
    app = ComplaintTrackerApp(root, session, complaints, users, settings)

    def on_close():
        complaints.cancel_all()
        root.destroy()

    root.protocol("WM_DELETE_WINDOW", on_close)
    app.start()
    root.mainloop()


if __name__ == "__main__":
    main()
