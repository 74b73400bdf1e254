from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from config import CURRENCY_SYMBOL, LOW_STOCK_THRESHOLD, RESPONSIBLE_PARTIES
from src.db_manager import PosDB, load_selected_db_path, save_selected_db_path
from src.errors import StockConflictError
from src.logic.cart import Cart, CartOutcome
from src.logic.catalog import CatalogService, CatalogSnapshot
from src.logic.checkout import CheckoutMachine, CheckoutState
from src.logic.commit import TransactionCommitter
from src.logic.ledger import LedgerService
from src.models import ItemKind, PaymentMethod

logger = structlog.get_logger(__name__)

PAYMENT_LABELS = {
    PaymentMethod.CASH: "Efectivo",
    PaymentMethod.CARD: "Tarjeta",
    PaymentMethod.TRANSFER: "Transferencia",
}


def money(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:.2f}"


class MainWindow(QMainWindow):
    def __init__(self, db: PosDB | None = None):
        super().__init__()
        self.db = db or PosDB(load_selected_db_path())
        self.active_kind = ItemKind.SERVICE
        self._updating_checkout = False
        self._wire_services()

        self.setWindowTitle("Chairside POS")
        self.resize(1180, 760)
        self._build_ui()
        self.switch_kind(ItemKind.SERVICE)
        self.load_catalog()

    def _wire_services(self) -> None:
        self.catalog = CatalogService(self.db)
        self.ledger = LedgerService(self.db)
        self.snapshot = CatalogSnapshot()
        self.cart = Cart()
        self.committer = TransactionCommitter(self.catalog, self.ledger)
        self.checkout = CheckoutMachine(self.cart, self.committer, RESPONSIBLE_PARTIES, self.snapshot)

    def _build_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        main_layout = QHBoxLayout(root)
        main_layout.addWidget(self._build_catalog_box(), 3)

        side = QVBoxLayout()
        side.addWidget(self._build_cart_box(), 1)
        self.checkout_stack = QStackedWidget()
        self.checkout_stack.addWidget(self._build_idle_page())
        self.checkout_stack.addWidget(self._build_payment_page())
        self.checkout_stack.addWidget(self._build_success_page())
        side.addWidget(self.checkout_stack)
        main_layout.addLayout(side, 2)

    def _build_catalog_box(self) -> QGroupBox:
        box = QGroupBox("Catálogo")
        layout = QVBoxLayout(box)

        db_row = QHBoxLayout()
        self.db_path_label = QLabel()
        self.db_path_label.setWordWrap(True)
        self.btn_select_db = QPushButton("Seleccionar base de datos")
        self.btn_select_db.clicked.connect(self.select_database_file)
        db_row.addWidget(self.db_path_label, 1)
        db_row.addWidget(self.btn_select_db)
        layout.addLayout(db_row)

        tabs = QHBoxLayout()
        self.services_btn = QPushButton("Servicios")
        self.products_btn = QPushButton("Productos")
        self.kind_buttons = {ItemKind.SERVICE: self.services_btn, ItemKind.PRODUCT: self.products_btn}
        for kind, btn in self.kind_buttons.items():
            btn.setCheckable(True)
            btn.clicked.connect(lambda _, k=kind: self.switch_kind(k))
            tabs.addWidget(btn)
        layout.addLayout(tabs)

        self.catalog_search = QLineEdit()
        self.catalog_search.setPlaceholderText("Buscar...")
        self.catalog_search.textChanged.connect(lambda _: self.refresh_catalog_table())
        layout.addWidget(self.catalog_search)

        self.catalog_table = QTableWidget(0, 5)
        self.catalog_table.setHorizontalHeaderLabels(["Nombre", "Marca", "Precio", "Stock", ""])
        self.catalog_table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.catalog_table)
        return box

    def _build_cart_box(self) -> QGroupBox:
        box = QGroupBox("Orden actual")
        layout = QVBoxLayout(box)

        self.cart_table = QTableWidget(0, 6)
        self.cart_table.setHorizontalHeaderLabels(["Nombre", "Cant.", "Importe", "", "", ""])
        self.cart_table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.cart_table)

        self.total_label = QLabel()
        self.total_label.setAlignment(Qt.AlignmentFlag.AlignRight)
        layout.addWidget(self.total_label)
        return box

    def _build_idle_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        self.charge_btn = QPushButton("COBRAR")
        self.charge_btn.clicked.connect(self.begin_checkout)
        layout.addWidget(self.charge_btn)
        return page

    def _build_payment_page(self) -> QWidget:
        page = QGroupBox("Finalizar venta")
        form = QFormLayout(page)

        self.party_combo = QComboBox()
        self.party_combo.addItem("Selecciona...", None)
        for party in RESPONSIBLE_PARTIES:
            self.party_combo.addItem(party, party)
        self.party_combo.currentIndexChanged.connect(self._on_party_changed)

        self.method_combo = QComboBox()
        self.method_combo.addItem("Selecciona...", None)
        for method, label in PAYMENT_LABELS.items():
            self.method_combo.addItem(label, method)
        self.method_combo.currentIndexChanged.connect(self._on_method_changed)

        self.reference_input = QLineEdit()
        self.reference_input.setPlaceholderText("Ej: 123456")
        self.reference_input.textEdited.connect(self._on_reference_edited)

        self.cash_input = QLineEdit()
        self.cash_input.setPlaceholderText("0.00")
        self.cash_input.textEdited.connect(self._on_cash_edited)
        self.change_label = QLabel(money(0))

        self.confirm_btn = QPushButton()
        self.confirm_btn.clicked.connect(self.commit_sale)
        self.cancel_btn = QPushButton("Cancelar")
        self.cancel_btn.clicked.connect(self.cancel_checkout)
        self.checkout_error_label = QLabel()
        self.checkout_error_label.setWordWrap(True)
        self.checkout_error_label.setStyleSheet("color: #c0392b")

        form.addRow("1. Responsable", self.party_combo)
        form.addRow("2. Método de pago", self.method_combo)
        form.addRow("Referencia", self.reference_input)
        form.addRow("Monto recibido", self.cash_input)
        form.addRow("Cambio", self.change_label)
        form.addRow(self.checkout_error_label)
        row = QHBoxLayout()
        row.addWidget(self.cancel_btn)
        row.addWidget(self.confirm_btn)
        form.addRow(row)
        return page

    def _build_success_page(self) -> QWidget:
        page = QGroupBox("Venta exitosa")
        layout = QVBoxLayout(page)
        self.success_label = QLabel()
        self.success_label.setWordWrap(True)
        layout.addWidget(self.success_label)
        self.new_sale_btn = QPushButton("Nueva venta")
        self.new_sale_btn.clicked.connect(self.start_new_sale)
        layout.addWidget(self.new_sale_btn)
        return page

    def _run(self, coro):
        return asyncio.run(coro)

    def switch_kind(self, kind: ItemKind) -> None:
        self.active_kind = kind
        for k, btn in self.kind_buttons.items():
            btn.setChecked(k is kind)
        self.refresh_catalog_table()

    def load_catalog(self) -> None:
        try:
            self._run(self.snapshot.reload(self.catalog))
        except Exception as exc:
            logger.error("catalog_load_failed", error=str(exc))
            self._warn(f"Error al cargar el catálogo: {exc}")
        self.cart.rebind(self.snapshot)
        self.refresh_all()

    def select_database_file(self) -> None:
        if self.checkout.state is not CheckoutState.IDLE:
            self._warn("Termina o cancela el cobro antes de cambiar de base de datos")
            return
        selected_path, _ = QFileDialog.getSaveFileName(
            self,
            "Seleccionar base de datos",
            str(self.db.db_path),
            "SQLite DB (*.db)",
        )
        if not selected_path:
            return

        target = Path(selected_path)
        try:
            new_db = PosDB(target)
        except Exception as exc:
            self._warn(f"No se pudo abrir la base de datos: {exc}")
            return

        self.db = new_db
        self._wire_services()
        save_selected_db_path(target)
        self.load_catalog()
        self._info(f"Base de datos: {target}")

    def add_to_cart(self, item_id: str) -> None:
        entry = self.snapshot.get(item_id)
        if entry is None:
            return
        outcome = self.cart.add_item(entry)
        if outcome is CartOutcome.OUT_OF_STOCK:
            self._warn("Sin stock disponible")
        elif outcome is CartOutcome.AT_STOCK_LIMIT:
            self.statusBar().showMessage(f"Stock máximo alcanzado: {entry.name}", 3000)
        elif outcome is CartOutcome.FROZEN:
            self.statusBar().showMessage("La orden está bloqueada durante el cobro", 3000)
        self.refresh_all()

    def adjust_cart_item(self, item_id: str, delta: int) -> None:
        outcome = self.cart.adjust_quantity(item_id, delta)
        if outcome is CartOutcome.AT_STOCK_LIMIT:
            self.statusBar().showMessage("Stock máximo alcanzado", 3000)
        elif outcome is CartOutcome.FROZEN:
            self.statusBar().showMessage("La orden está bloqueada durante el cobro", 3000)
        self.refresh_all()

    def remove_cart_item(self, item_id: str) -> None:
        if self.cart.remove_item(item_id) is CartOutcome.FROZEN:
            self.statusBar().showMessage("La orden está bloqueada durante el cobro", 3000)
        self.refresh_all()

    def begin_checkout(self) -> None:
        if not self.checkout.begin():
            return
        self._updating_checkout = True
        try:
            self.party_combo.setCurrentIndex(0)
            self.method_combo.setCurrentIndex(0)
            self.reference_input.clear()
            self.cash_input.clear()
        finally:
            self._updating_checkout = False
        self.refresh_all()

    def _on_party_changed(self, _index: int) -> None:
        if self._updating_checkout:
            return
        self.checkout.select_party(self.party_combo.currentData())
        self.refresh_checkout()

    def _on_method_changed(self, _index: int) -> None:
        if self._updating_checkout:
            return
        self.checkout.select_payment_method(self.method_combo.currentData())
        self.refresh_checkout()

    def _on_reference_edited(self, text: str) -> None:
        self.checkout.set_reference(text)
        self.refresh_checkout()

    def _on_cash_edited(self, text: str) -> None:
        try:
            amount = float(text.strip()) if text.strip() else None
        except ValueError:
            amount = None
        self.checkout.set_cash_tendered(amount)
        self.refresh_checkout()

    def commit_sale(self) -> None:
        self.confirm_btn.setEnabled(False)
        self.confirm_btn.setText("Procesando...")
        try:
            self._run(self.checkout.commit())
        except Exception as exc:
            logger.error("commit_crashed", error=str(exc))
            self._warn(f"Error al procesar la venta: {exc}")

        if self.checkout.state is CheckoutState.FAILED:
            error = self.checkout.error
            if isinstance(error, StockConflictError):
                self._warn(f"Stock insuficiente, ajusta la orden: {error}")
            else:
                self._warn("Error al procesar la venta. Por favor intenta de nuevo.")
        elif self.checkout.reconciliation_error is not None:
            self._warn(
                "La venta quedó registrada pero no se pudo descontar el stock de: "
                + ", ".join(f.item_id for f in self.checkout.reconciliation_error.failures)
            )
        self.refresh_all()

    def cancel_checkout(self) -> None:
        self.checkout.cancel()
        self.refresh_all()

    def start_new_sale(self) -> None:
        self.checkout.start_new_sale()
        self.refresh_all()

    def refresh_all(self) -> None:
        self.db_path_label.setText(str(self.db.db_path))
        self.refresh_catalog_table()
        self.refresh_cart_table()
        self.refresh_checkout()

    def refresh_catalog_table(self) -> None:
        entries = self.snapshot.search(self.catalog_search.text(), self.active_kind)
        self.catalog_table.setRowCount(len(entries))
        for r, entry in enumerate(entries):
            self.catalog_table.setItem(r, 0, QTableWidgetItem(entry.name))
            self.catalog_table.setItem(r, 1, QTableWidgetItem(entry.brand or ""))
            self.catalog_table.setItem(r, 2, QTableWidgetItem(money(entry.unit_price)))
            stock_item = QTableWidgetItem("" if entry.stock_level is None else str(entry.stock_level))
            if entry.is_product and (entry.stock_level or 0) < LOW_STOCK_THRESHOLD:
                stock_item.setForeground(QColor("#c0392b"))
            self.catalog_table.setItem(r, 3, stock_item)

            add_btn = QPushButton("Agregar")
            add_btn.setEnabled(not entry.is_product or (entry.stock_level or 0) > 0)
            add_btn.clicked.connect(lambda _, i=entry.id: self.add_to_cart(i))
            self.catalog_table.setCellWidget(r, 4, add_btn)

    def refresh_cart_table(self) -> None:
        lines = self.cart.lines()
        editable = not self.cart.frozen
        self.cart_table.setRowCount(len(lines))
        for r, line in enumerate(lines):
            self.cart_table.setItem(r, 0, QTableWidgetItem(line.entry.name))
            self.cart_table.setItem(r, 1, QTableWidgetItem(str(line.quantity)))
            self.cart_table.setItem(r, 2, QTableWidgetItem(money(line.subtotal)))

            for col, (label, handler) in enumerate(
                (
                    ("-", lambda _, i=line.item_id: self.adjust_cart_item(i, -1)),
                    ("+", lambda _, i=line.item_id: self.adjust_cart_item(i, 1)),
                    ("Quitar", lambda _, i=line.item_id: self.remove_cart_item(i)),
                ),
                start=3,
            ):
                btn = QPushButton(label)
                btn.setEnabled(editable)
                btn.clicked.connect(handler)
                self.cart_table.setCellWidget(r, col, btn)

        self.total_label.setText(f"Total a pagar: {money(self.cart.total())}")

    def refresh_checkout(self) -> None:
        state = self.checkout.state
        if state is CheckoutState.IDLE:
            self.checkout_stack.setCurrentIndex(0)
            self.charge_btn.setEnabled(not self.cart.is_empty)
            return
        if state is CheckoutState.SUCCESS:
            self.checkout_stack.setCurrentIndex(2)
            self.success_label.setText(self._success_text())
            return

        self.checkout_stack.setCurrentIndex(1)
        context = self.checkout.context
        method = context.payment_method if context else None
        editing = state is not CheckoutState.COMMITTING
        self.party_combo.setEnabled(editing)
        self.method_combo.setEnabled(editing and context is not None and context.responsible_party is not None)
        self.reference_input.setVisible(method is PaymentMethod.TRANSFER)
        self.cash_input.setVisible(method is PaymentMethod.CASH)
        self.change_label.setText(money(self.checkout.change_due))
        self.confirm_btn.setEnabled(self.checkout.can_commit)
        self.confirm_btn.setText(f"Confirmar pago ({money(self.cart.total())})")
        self.cancel_btn.setEnabled(state is not CheckoutState.COMMITTING)
        error = self.checkout.error if state is CheckoutState.FAILED else None
        self.checkout_error_label.setText(str(error) if error else "")

    def _success_text(self) -> str:
        transaction = self.checkout.transaction
        if transaction is None:
            return ""
        lines = [
            f"Folio: {transaction.id[:8].upper()}",
            f"Responsable: {transaction.responsible_party}",
        ]
        lines.extend(
            f"{line.quantity} x {line.name}  {money(line.subtotal)}" for line in transaction.lines
        )
        lines.append(f"Total: {money(transaction.total)}")
        lines.append(f"Método de pago: {PAYMENT_LABELS[transaction.payment_method]}")
        if transaction.reference:
            lines.append(f"Ref: {transaction.reference}")
        return "\n".join(lines)

    def _warn(self, msg: str) -> None:
        QMessageBox.warning(self, "Aviso", msg)

    def _info(self, msg: str) -> None:
        QMessageBox.information(self, "Aviso", msg)
