import logging
from typing import Optional

from nicegui import ui

from mips_datapath.config import SimulatorConfig
from mips_datapath.state import app_state
from mips_datapath.routing import drawer_menu
from mips_datapath.pages import program, step_debug


ROUTES = {
    '/': ('upload_file', 'Load Program', program.content),
    '/step-debug': ('bug_report', 'Step Debugger', step_debug.content),
}


raw_logger = logging.getLogger('mips.raw')
clean_logger = logging.getLogger('mips.clean')

# Ensure they don't propagate to the root logger (prevents double logging to console)
raw_logger.propagate = False
clean_logger.propagate = False

class UiLogHandler(logging.Handler):
    def __init__(self, log_element: ui.log, replace: bool = False):
        super().__init__()
        self.log_element = log_element
        self.replace = replace
        # No timestamps, just the message
        self.setFormatter(logging.Formatter('%(message)s'))

    def emit(self, record):
        msg = self.format(record)
        if self.replace:
            self.log_element.clear()
        self.log_element.push(msg)


def root():
    # --- 1. Header ---
    with ui.header(elevated=False).classes('bg-black items-center justify-between px-6'):
        ui.label('MIPS SINGLE-CYCLE DATAPATH').classes('text-xl font-bold tracking-tight')

        info_icon = ui.icon('info', color='white', size="xl").classes('cursor-help')

        @ui.refreshable
        def state_labels():
            ui.label(f'IMEM: {app_state.last_loaded_program or "empty"}').classes('text-xl text-gray-400 whitespace-nowrap')
            ui.label(f'DMEM: {app_state.last_loaded_data or "zeroed"}').classes('text-xl text-gray-400 whitespace-nowrap')
            ui.label(f'Cycle limit: {app_state.config.max_cycles}').classes('text-xl text-gray-400 whitespace-nowrap')

        info_icon.on('mouseenter', lambda: state_labels.refresh())

        with info_icon:
            with ui.tooltip().classes('p-2 bg-slate-800'):
                state_labels()

    # --- 2. Left Drawer ---
    with ui.left_drawer(value=True).classes('bg-slate-800'):
        drawer_menu(ROUTES)

    # --- 3. Footer (Fixed at bottom) ---
    with ui.footer().classes("h-[30vh] bg-slate-900 flex flex-col "):
        with ui.tabs().classes("m-0 p-0") as tabs:
            raw_tab = ui.tab('Raw', icon='sync_alt')
            clean_tab = ui.tab('Clean', icon='terminal')

        with ui.tab_panels(tabs, value=clean_tab).classes('w-full flex flex-col grow bg-black font-mono text-xl p-0 m-0 overflow-hidden'):
            with ui.tab_panel(raw_tab):
                # Fetched words and image dumps
                raw_log = ui.log(max_lines=2000).classes('w-full grow text-green-500 overflow-auto')
            with ui.tab_panel(clean_tab):
                # One line per executed cycle
                clean_log = ui.log(max_lines=2000).classes('w-full flex flex-col grow text-blue-300 overflow-auto')

    raw_logger.handlers.clear()
    clean_logger.handlers.clear()
    raw_logger.addHandler(UiLogHandler(raw_log))
    clean_logger.addHandler(UiLogHandler(clean_log))
    raw_logger.setLevel(logging.INFO)
    clean_logger.setLevel(logging.INFO)

    with ui.column().classes('absolute-full p-6 overflow-hidden'):
        # This wrapper takes all space between Header and Footer
        ui.sub_pages({route: info[2] for route, info in ROUTES.items()}).classes('w-full h-full overflow-auto')


def run_gui(port: int = 8080, config: Optional[SimulatorConfig] = None):
    if config is not None:
        app_state.config = config
    ui.run(root, title="MIPS Datapath Simulator", dark=True, reload=False, port=port)
