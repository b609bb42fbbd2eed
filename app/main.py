"""
Streamlit Frontend for the Mosque Ledger

Two audiences:
- the congregation, who see the public dashboard (read only)
- the treasurers, who log in to record entries, print reports and sync

DESIGN PRINCIPLES:
1. The public page never shows edit controls
2. Every save shows the validation outcome
3. Clear messages in Indonesian
4. Pages only talk to the orchestrator flows
"""

import asyncio
import time
from datetime import date

import streamlit as st

from mosque_ledger.config import get_settings, validate_all_settings
from mosque_ledger.charts import cashflow_figure, category_monthly_figure, category_pie_figure
from mosque_ledger.exports import ImportFormatError
from mosque_ledger.models.transaction import Transaction, TransactionType
from mosque_ledger.orchestrator import AppComponents, create_app_components
from mosque_ledger.reports import (
    format_currency,
    format_date,
    format_month_label,
    monthly_report,
    period_report,
    recent_public,
    summarize,
    type_label,
)
from mosque_ledger.services.storage import NotFoundError
from mosque_ledger.services.sync import BackupNotFoundError, SyncError
from mosque_ledger.services.sync.share import InvalidShareLinkError
from mosque_ledger.validation import ValidationFailedError


# Page configuration
st.set_page_config(
    page_title="Laporan Keuangan Masjid",
    page_icon="🕌",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .income-box {
        padding: 20px;
        background-color: #d1fae5;
        border-radius: 10px;
        border-left: 5px solid #059669;
        margin: 10px 0;
    }
    .expense-box {
        padding: 20px;
        background-color: #fee2e2;
        border-radius: 10px;
        border-left: 5px solid #dc2626;
        margin: 10px 0;
    }
    .balance-box {
        padding: 20px;
        background-color: #e0f2fe;
        border-radius: 10px;
        border-left: 5px solid #0369a1;
        margin: 10px 0;
    }
    .big-number {
        font-size: 1.8em;
        font-weight: bold;
        color: #1f2937;
    }
</style>
""", unsafe_allow_html=True)


ADMIN_PAGES = [
    "📊 Dashboard",
    "💚 Pemasukan",
    "❤️ Pengeluaran",
    "🔁 Transfer",
    "📑 Laporan",
    "🏷️ Kategori",
    "💾 Manajemen Data",
    "☁️ Sinkronisasi",
    "⚙️ Pengaturan",
]

PAGE_TYPES = {
    "💚 Pemasukan": TransactionType.INCOME,
    "❤️ Pengeluaran": TransactionType.EXPENSE,
    "🔁 Transfer": TransactionType.TRANSFER,
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        components = create_app_components(use_storage=True)
        run_async(components.ledger.load())
    except Exception as e:
        st.error(f"Gagal memuat penyimpanan: {e}")
        components = create_app_components(use_storage=False)
        run_async(components.ledger.load())
    return components


def transactions_table(transactions: list[Transaction]) -> list[dict]:
    return [
        {
            "Tanggal": format_date(t.date),
            "Deskripsi": t.description,
            "Kategori": t.category,
            "Tipe": type_label(t.type),
            "Jumlah": format_currency(t.amount),
        }
        for t in transactions
    ]


def render_ai_summary(text: str):
    """Model output is shown as markdown only; HTML in it is not rendered."""
    with st.container(border=True):
        st.markdown(text)


def render_summary_cards(transactions: list[Transaction]):
    summary = summarize(transactions)
    col1, col2, col3 = st.columns(3)
    for col, css, label, value in (
        (col1, "income-box", "Total Pemasukan", summary.total_income),
        (col2, "expense-box", "Total Pengeluaran", summary.total_expense),
        (col3, "balance-box", "Saldo Akhir", summary.balance),
    ):
        with col:
            st.markdown(
                f"""
                <div class="{css}">
                    <div>{label}</div>
                    <div class="big-number">{format_currency(value)}</div>
                </div>
                """,
                unsafe_allow_html=True,
            )


def maybe_auto_pull(components: AppComponents):
    """Pull the group snapshot when auto pull is on and the interval passed."""
    sync_settings = get_settings().sync
    if not sync_settings.auto_pull or not components.sync.group:
        return
    last = st.session_state.get("last_auto_pull", 0.0)
    if time.time() - last < sync_settings.poll_interval_seconds:
        return
    st.session_state.last_auto_pull = time.time()
    if run_async(components.sync.poll_tick()):
        st.toast("Data terbaru dari cloud telah dimuat.")


def main():
    """Main application entry point."""
    components = get_components()
    app_settings = get_settings().app

    if "is_admin" not in st.session_state:
        st.session_state.is_admin = False

    maybe_auto_pull(components)

    st.sidebar.title(f"🕌 {app_settings.masjid_name}")
    st.sidebar.caption(app_settings.masjid_organization)
    st.sidebar.markdown("---")

    if not st.session_state.is_admin:
        render_login(components)
        render_public_dashboard(components)
        return

    page = st.sidebar.radio("Menu:", ADMIN_PAGES, index=0)
    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Keluar"):
        run_async(components.auth.logout(st.session_state.get("admin_user", "")))
        st.session_state.is_admin = False
        st.rerun()

    if page == "📊 Dashboard":
        render_admin_dashboard(components)
    elif page in PAGE_TYPES:
        render_type_page(components, PAGE_TYPES[page])
    elif page == "📑 Laporan":
        render_reports_page(components)
    elif page == "🏷️ Kategori":
        render_categories_page(components)
    elif page == "💾 Manajemen Data":
        render_data_page(components)
    elif page == "☁️ Sinkronisasi":
        render_sync_page(components)
    elif page == "⚙️ Pengaturan":
        render_settings_page()


def render_login(components: AppComponents):
    with st.sidebar.expander("🔐 Login Pengurus"):
        with st.form("login_form"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Masuk")
        if submitted:
            if run_async(components.auth.login(username, password)):
                st.session_state.is_admin = True
                st.session_state.admin_user = username
                st.rerun()
            else:
                st.error("Username atau password salah.")


def render_public_dashboard(components: AppComponents):
    app_settings = get_settings().app
    transactions = components.ledger.transactions

    st.title(f"Laporan Keuangan {app_settings.masjid_name}")
    st.caption(app_settings.masjid_address)

    render_summary_cards(transactions)

    st.plotly_chart(cashflow_figure(transactions), use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(
            category_pie_figure(transactions, TransactionType.INCOME),
            use_container_width=True,
        )
    with col2:
        st.plotly_chart(
            category_pie_figure(transactions, TransactionType.EXPENSE),
            use_container_width=True,
        )

    st.markdown(f"### {app_settings.public_recent_limit} Transaksi Terakhir")
    latest = recent_public(transactions, app_settings.public_recent_limit)
    if latest:
        st.dataframe(transactions_table(latest), use_container_width=True, hide_index=True)
    else:
        st.info("Belum ada transaksi.")

    file_name, content = run_async(components.data.public_pdf())
    st.download_button(
        "📄 Unduh Laporan PDF",
        data=content,
        file_name=file_name,
        mime="application/pdf",
    )


def render_admin_dashboard(components: AppComponents):
    transactions = components.ledger.transactions
    app_settings = get_settings().app

    st.title("📊 Dashboard")
    render_summary_cards(transactions)

    st.markdown("### 🤖 Ringkasan Otomatis")
    if st.button("Buat Ringkasan untuk Donatur"):
        with st.spinner("Menyusun ringkasan..."):
            st.session_state.ai_summary = run_async(
                components.summary_agent.generate(transactions)
            )
    if st.session_state.get("ai_summary"):
        render_ai_summary(st.session_state.ai_summary)

    st.plotly_chart(cashflow_figure(transactions), use_container_width=True)

    st.markdown(f"### {app_settings.recent_limit} Transaksi Terbaru")
    render_editable_list(components, components.ledger.recent(app_settings.recent_limit))


def render_editable_list(components: AppComponents, transactions: list[Transaction]):
    if not transactions:
        st.info("Belum ada transaksi.")
        return

    categories = components.ledger.categories
    for t in transactions:
        sign = "+" if t.type == TransactionType.INCOME else "-"
        label = f"{format_date(t.date)} · {t.description} · {sign}{format_currency(t.amount)}"
        with st.expander(label):
            with st.form(f"edit_{t.id}"):
                description = st.text_input("Deskripsi", value=t.description)
                amount = st.number_input("Jumlah (Rp)", min_value=0, value=int(t.amount), step=1000)
                entry_date = st.date_input("Tanggal", value=t.date)
                options = categories.for_type(t.type)
                if t.category not in options:
                    options = options + [t.category]
                category = st.selectbox("Kategori", options, index=options.index(t.category))
                col1, col2 = st.columns(2)
                save = col1.form_submit_button("💾 Simpan")
                delete = col2.form_submit_button("🗑️ Hapus")

            if save:
                result = components.ledger.validate_entry(
                    description, amount, entry_date, t.type, category
                )
                if not result.is_valid:
                    for issue in result.errors:
                        st.error(issue.message)
                else:
                    try:
                        run_async(components.ledger.update(t.model_copy(update={
                            "description": description.strip(),
                            "amount": amount,
                            "date": entry_date,
                            "category": category,
                        })))
                        st.success("Transaksi diperbarui.")
                        st.rerun()
                    except NotFoundError:
                        st.error("Transaksi sudah tidak ada.")
            if delete:
                run_async(components.ledger.delete(t.id))
                st.rerun()


def render_type_page(components: AppComponents, transaction_type: TransactionType):
    label = type_label(transaction_type)
    st.title(f"{label}")

    options = components.ledger.categories.for_type(transaction_type)
    with st.form(f"add_{transaction_type.value}", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Deskripsi")
            amount = st.number_input("Jumlah (Rp)", min_value=0, value=0, step=1000)
        with col2:
            entry_date = st.date_input("Tanggal", value=date.today())
            category = st.selectbox("Kategori", options) if options else st.text_input("Kategori")
        submitted = st.form_submit_button(f"➕ Tambah {label}")

    if submitted:
        try:
            transaction, result = run_async(components.ledger.add_entry(
                description, amount, entry_date, transaction_type, category or "",
            ))
            st.success(f"Tersimpan: {transaction.description} ({format_currency(transaction.amount)})")
            for issue in result.warnings:
                st.warning(issue.message)
        except ValidationFailedError as e:
            for issue in e.result.errors:
                st.error(issue.message)

    entries = components.ledger.by_type(transaction_type)
    st.markdown(f"### Daftar {label} ({len(entries)})")
    if transaction_type != TransactionType.TRANSFER and entries:
        st.plotly_chart(
            category_monthly_figure(entries, transaction_type),
            use_container_width=True,
        )
    render_editable_list(components, entries)


def render_reports_page(components: AppComponents):
    st.title("📑 Laporan")
    transactions = components.ledger.transactions

    tab_month, tab_period = st.tabs(["Bulanan", "Periode"])

    with tab_month:
        months = sorted({t.month_key for t in transactions}, reverse=True)
        if not months:
            st.info("Belum ada transaksi.")
        else:
            key = st.selectbox("Bulan", months, format_func=format_month_label)
            report = monthly_report(transactions, key)
            render_report(components, report)

    with tab_period:
        col1, col2 = st.columns(2)
        start = col1.date_input("Dari", value=date.today().replace(day=1))
        end = col2.date_input("Sampai", value=date.today())
        try:
            render_report(components, period_report(transactions, start, end))
        except ValueError as e:
            st.error(str(e))


def render_report(components: AppComponents, report):
    st.subheader(report.subtitle)
    render_summary_cards(report.transactions)

    if report.is_empty:
        st.info("Tidak ada transaksi pada periode ini.")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("**Pemasukan per Kategori**")
        for row in report.breakdown.income:
            st.markdown(f"- {row.category}: {format_currency(row.amount)} ({row.percentage:.1f}%)")
    with col2:
        st.markdown("**Pengeluaran per Kategori**")
        for row in report.breakdown.expense:
            st.markdown(f"- {row.category}: {format_currency(row.amount)} ({row.percentage:.1f}%)")

    st.dataframe(transactions_table(report.transactions), use_container_width=True, hide_index=True)

    col1, col2, col3 = st.columns(3)
    name, content = run_async(components.data.report_csv(report))
    col1.download_button("⬇️ CSV", data=content, file_name=name, mime="text/csv",
                         key=f"csv_{report.file_stem}")
    name, content = run_async(components.data.report_csv(report, excel=True))
    col2.download_button("⬇️ Excel", data=content, file_name=name,
                         mime="application/vnd.ms-excel", key=f"xls_{report.file_stem}")
    name, content = run_async(components.data.period_pdf(report))
    col3.download_button("⬇️ PDF", data=content, file_name=name, mime="application/pdf",
                         key=f"pdf_{report.file_stem}")


def render_categories_page(components: AppComponents):
    st.title("🏷️ Kategori")

    for transaction_type in TransactionType:
        st.markdown(f"### {type_label(transaction_type)}")
        names = components.ledger.categories.for_type(transaction_type)
        for idx, name in enumerate(names):
            col1, col2, col3 = st.columns([4, 1, 1])
            new_name = col1.text_input(
                "Nama", value=name, key=f"cat_{transaction_type.value}_{idx}",
                label_visibility="collapsed",
            )
            if col2.button("💾", key=f"rename_{transaction_type.value}_{idx}") and new_name != name:
                try:
                    run_async(components.ledger.rename_category(transaction_type, idx, new_name))
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))
            if col3.button("🗑️", key=f"remove_{transaction_type.value}_{idx}"):
                run_async(components.ledger.remove_category(transaction_type, idx))
                st.rerun()

        with st.form(f"new_cat_{transaction_type.value}", clear_on_submit=True):
            new_category = st.text_input("Kategori baru")
            if st.form_submit_button("➕ Tambah"):
                try:
                    run_async(components.ledger.add_category(transaction_type, new_category))
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))


def render_data_page(components: AppComponents):
    st.title("💾 Manajemen Data")

    st.markdown("### Ekspor")
    col1, col2 = st.columns(2)
    name, content = run_async(components.data.json_backup())
    col1.download_button("⬇️ Backup JSON", data=content, file_name=name, mime="application/json")
    name, content = run_async(components.data.cashbook())
    col2.download_button(
        "⬇️ Buku Kas (Excel)",
        data=content,
        file_name=name,
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

    st.markdown("### Impor")
    st.warning("Impor akan MENGGANTI seluruh data transaksi yang ada.")

    json_file = st.file_uploader("Pulihkan dari backup JSON", type=["json"])
    if json_file and st.button("Pulihkan JSON"):
        try:
            count = run_async(components.data.import_json_backup(json_file.getvalue(), json_file.name))
            st.success(f"{count} transaksi dipulihkan.")
        except ImportFormatError as e:
            st.error(str(e))

    xlsx_file = st.file_uploader("Impor buku kas Excel", type=["xlsx"])
    if xlsx_file and st.button("Impor Excel"):
        try:
            count = run_async(components.data.import_cashbook_file(xlsx_file.getvalue()))
            st.success(f"{count} transaksi diimpor.")
        except ImportFormatError as e:
            st.error(str(e))


def render_sync_page(components: AppComponents):
    st.title("☁️ Sinkronisasi")
    sync = components.sync

    st.markdown("### Grup Laporan")
    group = st.text_input("Nama grup", value=sync.group)
    col1, col2, col3 = st.columns(3)
    if col1.button("⬆️ Kirim ke Cloud"):
        if run_async(sync.push(group)):
            st.success("Data berhasil dikirim.")
        else:
            st.error("Gagal mengirim data. Periksa koneksi dan nama grup.")
    if col2.button("⬇️ Ambil dari Cloud"):
        result = run_async(sync.pull(group))
        if result.ok:
            st.success(f"{len(result.data)} transaksi dimuat dari grup '{sync.group}'.")
        elif result.is_new_group:
            st.info("Grup baru, belum ada data tersimpan. Kirim data untuk memulai.")
        elif result.status == 0:
            st.warning("Nama grup belum diisi.")
        else:
            st.error(f"Gagal mengambil data (status {result.status}).")
    if col3.button("🔌 Tes Koneksi"):
        if run_async(sync.test_connection()):
            st.success("Koneksi ke cloud berhasil.")
        else:
            st.error("Tidak dapat terhubung ke cloud.")

    st.markdown("### Bagikan")
    if sync.group:
        link, wa = run_async(sync.group_share())
        st.code(link)
        st.link_button("📲 Bagikan Grup via WhatsApp", wa)
    if st.button("🔗 Buat Magic Link"):
        link, wa = run_async(sync.snapshot_share())
        st.code(link)
        st.link_button("📲 Kirim Data via WhatsApp", wa)

    incoming = st.text_input("Tempel tautan yang diterima")
    if incoming and st.button("Buka Tautan"):
        try:
            outcome = run_async(sync.handle_incoming_link(incoming))
        except InvalidShareLinkError as e:
            st.error(str(e))
        else:
            if outcome is None:
                st.warning("Tautan tidak berisi grup maupun data.")
            elif isinstance(outcome, str):
                st.success(f"Grup '{outcome}' dipilih.")
            else:
                st.success(f"{outcome} transaksi dimuat dari tautan.")

    st.markdown("### Google Drive")
    col1, col2 = st.columns(2)
    if col1.button("⬆️ Backup ke Drive"):
        try:
            file_id = run_async(sync.backup_to_drive())
            st.success(f"Backup tersimpan (id {file_id}).")
        except SyncError as e:
            st.error(str(e))
    if col2.button("⬇️ Pulihkan dari Drive"):
        try:
            count = run_async(sync.restore_from_drive())
            st.success(f"{count} transaksi dipulihkan dari Drive.")
        except BackupNotFoundError as e:
            st.warning(str(e))
        except SyncError as e:
            st.error(str(e))


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Pengaturan")

    st.markdown("### Status Koneksi")
    status = validate_all_settings()

    services = [
        ("Key-value Cloud (Sinkronisasi)", "kv_store"),
        ("Google Drive (Backup)", "google_drive"),
        ("Google Sheets (Penyimpanan)", "google_sheets"),
        ("Gemini (Ringkasan AI)", "gemini"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Terkonfigurasi")
        else:
            error = status.get(f"{key}_error", "Belum dikonfigurasi")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Konfigurasi")
    st.markdown(
        "Buat file `.env` untuk mengatur identitas masjid, kredensial admin "
        "dan integrasi. Lihat `.env.example` untuk daftar variabel."
    )


if __name__ == "__main__":
    main()
