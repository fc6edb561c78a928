from pathlib import Path
from PySide6.QtWidgets import QWidget, QLabel
from PySide6.QtCore import Qt
from qfluentwidgets import (
    ScrollArea,
    SettingCardGroup,
    OptionsSettingCard,
    RangeSettingCard,
    ExpandLayout,
    InfoBar,
    InfoBarPosition,
    Theme,
    setTheme,
)
from qfluentwidgets import FluentIcon as FIF

from farmmap.gui.config import cfg, Language, tr, translator


class SettingsTab(ScrollArea):
    """
    Settings Interface.
    """

    def __init__(self, parent=None):
        super().__init__(parent)

        self.scrollWidget = QWidget()
        self.expandLayout = ExpandLayout(self.scrollWidget)

        self.setWidget(self.scrollWidget)
        self.setWidgetResizable(True)
        self.setObjectName("settingsInterface")

        self._init_ui()
        self._connect_signals()

    def _init_ui(self):
        """Initialize UI controls."""
        self.setViewportMargins(0, 80, 0, 20)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)

        # --- Settings Header ---
        self.settingLabel = QLabel(tr("nav.settings"), self)
        self.settingLabel.setObjectName("settingLabel")
        self.settingLabel.move(36, 30)

        # --- General Group ---
        self.generalGroup = SettingCardGroup(
            tr("settings.group.general"), self.scrollWidget
        )

        # Theme Selection
        self.themeCard = OptionsSettingCard(
            cfg.themeMode,
            FIF.BRUSH,
            tr("settings.label.theme"),
            tr("settings.desc.theme"),
            texts=[
                tr("settings.theme.light"),
                tr("settings.theme.dark"),
                tr("settings.theme.auto"),
            ],
            parent=self.generalGroup,
        )

        # Language Selection
        self.languageCard = OptionsSettingCard(
            cfg.language,
            FIF.LANGUAGE,
            tr("settings.label.language"),
            tr("settings.desc.language"),
            texts=[
                tr("settings.lang.auto"),
                tr("settings.lang.en"),
                tr("settings.lang.ar"),
            ],
            parent=self.generalGroup,
        )

        self.generalGroup.addSettingCard(self.themeCard)
        self.generalGroup.addSettingCard(self.languageCard)

        # --- Map Group ---
        self.mapGroup = SettingCardGroup(tr("settings.group.map"), self.scrollWidget)

        self.overviewZoomCard = RangeSettingCard(
            cfg.overviewZoom,
            FIF.ZOOM,
            tr("settings.label.overview_zoom"),
            tr("settings.desc.overview_zoom"),
            parent=self.mapGroup,
        )
        self.drawZoomCard = RangeSettingCard(
            cfg.drawZoom,
            FIF.EDIT,
            tr("settings.label.draw_zoom"),
            tr("settings.desc.draw_zoom"),
            parent=self.mapGroup,
        )
        self.fitPaddingCard = RangeSettingCard(
            cfg.fitPadding,
            FIF.FIT_PAGE,
            tr("settings.label.fit_padding"),
            tr("settings.desc.fit_padding"),
            parent=self.mapGroup,
        )

        self.mapGroup.addSettingCard(self.overviewZoomCard)
        self.mapGroup.addSettingCard(self.drawZoomCard)
        self.mapGroup.addSettingCard(self.fitPaddingCard)

        # --- Cluster Group ---
        self.clusterGroup = SettingCardGroup(
            tr("settings.group.cluster"), self.scrollWidget
        )

        self.clusterRadiusCard = RangeSettingCard(
            cfg.clusterRadius,
            FIF.IOT,
            tr("settings.label.cluster_radius"),
            tr("settings.desc.cluster_radius"),
            parent=self.clusterGroup,
        )
        self.clusterMaxZoomCard = RangeSettingCard(
            cfg.clusterMaxZoom,
            FIF.ZOOM_IN,
            tr("settings.label.cluster_max_zoom"),
            tr("settings.desc.cluster_max_zoom"),
            parent=self.clusterGroup,
        )
        self.clusterTimeoutCard = RangeSettingCard(
            cfg.clusterLoadTimeoutMs,
            FIF.STOP_WATCH,
            tr("settings.label.cluster_timeout"),
            tr("settings.desc.cluster_timeout"),
            parent=self.clusterGroup,
        )

        self.clusterGroup.addSettingCard(self.clusterRadiusCard)
        self.clusterGroup.addSettingCard(self.clusterMaxZoomCard)
        self.clusterGroup.addSettingCard(self.clusterTimeoutCard)

        # --- Add Groups to Layout ---
        self.expandLayout.setSpacing(28)
        self.expandLayout.setContentsMargins(36, 10, 36, 0)
        self.expandLayout.addWidget(self.generalGroup)
        self.expandLayout.addWidget(self.mapGroup)
        self.expandLayout.addWidget(self.clusterGroup)

        self.scrollWidget.setObjectName("scrollWidget")
        self.setQss()

    def _connect_signals(self):
        """Connect signals."""
        cfg.themeChanged.connect(self.setQss)
        cfg.themeChanged.connect(setTheme)
        cfg.language.valueChanged.connect(self.setLanguage)
        for item in (cfg.overviewZoom, cfg.drawZoom, cfg.clusterRadius, cfg.clusterMaxZoom):
            item.valueChanged.connect(self._on_map_option_changed)

    def _on_map_option_changed(self, _value):
        """Map and cluster options apply to maps created afterwards."""
        InfoBar.info(
            title=tr("settings.msg.saved_title"),
            content=tr("settings.msg.applies_next_map"),
            orient=Qt.Orientation.Horizontal,
            isClosable=True,
            position=InfoBarPosition.TOP_RIGHT,
            duration=2000,
            parent=self,
        )

    def _on_restart_needed(self):
        """Show restart warning."""
        InfoBar.warning(
            title=tr("settings.msg.restart_title"),
            content=tr("settings.msg.restart"),
            orient=Qt.Orientation.Horizontal,
            isClosable=True,
            position=InfoBarPosition.TOP_RIGHT,
            duration=5000,
            parent=self,
        )

    def setQss(self):
        """Apply QSS."""
        theme = cfg.themeMode.value
        if theme == Theme.AUTO:
            import darkdetect

            theme_name = "dark" if darkdetect.isDark() else "light"
        else:
            theme_name = theme.value.lower()

        qss_path = (
            Path(__file__).parent.parent
            / "resource"
            / "qss"
            / theme_name
            / "setting_interface.qss"
        )
        if qss_path.exists():
            with open(qss_path, encoding="utf-8") as f:
                self.setStyleSheet(f.read())

    def setLanguage(self, language: Language):
        """Set language."""
        translator.set_language(language)
        self._on_restart_needed()
