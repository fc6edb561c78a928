
from PySide6.QtWidgets import QApplication
from PySide6.QtGui import QIcon

from loguru import logger

from qfluentwidgets import (
    FluentWindow,
    NavigationItemPosition,
    FluentIcon as FIF,
    setTheme,
)

from farmmap.core.farm_state import farm_state_from_record
from farmmap.gui.config import cfg, tr
from farmmap.gui.tabs.parcel_editor import ParcelEditorTab
from farmmap.gui.tabs.farm_overview import FarmOverviewTab
from farmmap.gui.tabs.settings import SettingsTab

class MainWindow(FluentWindow):
    """
    Main Window using Fluent Design.
    """

    def __init__(self, farms=None):
        super().__init__()

        # Create interfaces
        self.overview_tab = FarmOverviewTab(self)
        self.editor_tab = ParcelEditorTab(self)
        self.settings_tab = SettingsTab(self)

        # Set object names for FluentWindow navigation
        self.overview_tab.setObjectName("overview_tab")
        self.editor_tab.setObjectName("editor_tab")
        self.settings_tab.setObjectName("settings_tab")

        self.init_navigation()
        self.init_window()
        self.connect_signals()

        if farms:
            self.overview_tab.set_farms(farms)

        logger.info("MainWindow initialized successfully")

    def init_navigation(self):
        # Add interfaces to navigation
        self.addSubInterface(self.overview_tab, FIF.GLOBE, tr("nav.overview"))
        self.addSubInterface(self.editor_tab, FIF.EDIT, tr("nav.editor"))

        self.navigationInterface.addSeparator()

        # add custom widget to bottom
        self.addSubInterface(
            self.settings_tab,
            FIF.SETTING,
            tr("nav.settings"),
            NavigationItemPosition.BOTTOM
        )

    def connect_signals(self):
        # Overview -> Editor: the farm picked in "view details" becomes editable
        self.overview_tab.sigFarmSelected.connect(self._on_farm_selected)
        # Editor -> Overview: committed rings refresh the farm record
        self.editor_tab.sigFarmChanged.connect(self.overview_tab.update_farm)

    def _on_farm_selected(self, record):
        self.editor_tab.set_farm_state(farm_state_from_record(record))

    def init_window(self):
        self.resize(1200, 800)

        self.setWindowIcon(QIcon(":/qfluentwidgets/images/logo.png"))

        self.setWindowTitle(tr("app.title"))

        # Apply Theme
        setTheme(cfg.get(cfg.themeMode))

        # Center window
        desktop = QApplication.primaryScreen().availableGeometry()
        w, h = desktop.width(), desktop.height()
        self.move(w//2 - self.width()//2, h//2 - self.height()//2)

        self.navigationInterface.setMinimumExpandWidth(600)
        self.navigationInterface.setExpandWidth(200)

    def closeEvent(self, event):
        logger.info("MainWindow closing")
        # Cleanup interfaces
        for interface in [self.overview_tab, self.editor_tab]:
            interface.cleanup()
        super().closeEvent(event)
