from pathlib import Path

from nicegui import ui

from mips_datapath.backend.schemes import WORD_SIZE_BYTES
from mips_datapath.backend.instructions import InstructionFactory
from mips_datapath.backend.assembler import AssemblerError, assemble_source
from mips_datapath.backend.loader import FileLoader, FileType, LoaderError
from mips_datapath.state import app_state, data_state, loaded_program_state, step_by_step_state
from mips_datapath.routing import drawer_menu


def listing(words):
    return "\n".join(f"0x{i * WORD_SIZE_BYTES:08X}: {w:08X}  {InstructionFactory.disassemble(w, i * WORD_SIZE_BYTES)}"
                     for i, w in enumerate(words))


# --- THE DYNAMIC BLOCKS ---
@ui.refreshable
def machine_code_viewer():
    if loaded_program_state.machine_code is None:
        ui.label('Not assembled yet').classes('text-slate-500 p-4 text-lg')
        return
    ui.code(listing(loaded_program_state.machine_code), language='asm').classes('w-full text-lg')


@ui.refreshable
def data_summary():
    name = Path(data_state.filename).name if data_state.filename else "none (zeroed memory)"
    ui.label(f'Data image: {name}').classes('text-lg text-white')
    if data_state.words:
        ui.aggrid({
            'columnDefs': [
                {'headerName': 'Address', 'field': 'address'},
                {'headerName': 'Data', 'field': 'data'},
            ],
            'rowData': data_state.get_formatted_data(),
        }).classes('w-full h-64 text-lg')


# --- LOGIC & IO ---
def load_program(name: str):
    try:
        if FileLoader.detect_type(name) == FileType.ASSEMBLY:
            loaded_program_state.content = FileLoader.load_text(name)
            loaded_program_state.machine_code = None
            loaded_program_state.ready = False
        else:
            words = FileLoader.load_words(name, app_state.config.little_endian)
            loaded_program_state.content = listing(words)
            loaded_program_state.machine_code = words
            loaded_program_state.ready = True
    except (LoaderError, OSError) as e:
        ui.notify(f"Error loading file: {e}", type='negative')
        return
    loaded_program_state.filename = name
    machine_code_viewer.refresh()


def assemble():
    try:
        loaded_program_state.machine_code = assemble_source(loaded_program_state.content)
    except AssemblerError as e:
        loaded_program_state.machine_code = None
        loaded_program_state.ready = False
        ui.notify(f"Assembly failed: {e}", type='negative')
    else:
        loaded_program_state.ready = True
        ui.notify(f"Assembled {len(loaded_program_state.machine_code)} words", type='positive')
    machine_code_viewer.refresh()


def load_data(name: str):
    try:
        data_state.words = FileLoader.load_words(name, app_state.config.little_endian,
                                                 max_words=app_state.config.data_words)
    except LoaderError as e:
        ui.notify(f"Error loading data: {e}", type='negative')
        return
    data_state.filename = name
    data_summary.refresh()


def clear_data():
    data_state.filename = ""
    data_state.words = []
    data_summary.refresh()


def commit_to_simulator():
    if not loaded_program_state.ready:
        ui.notify("Assemble the program first", type='warning')
        return
    step_by_step_state.start(loaded_program_state.machine_code, data_state.words or None, app_state.config)
    app_state.last_loaded_program = Path(loaded_program_state.filename).name or "editor buffer"
    app_state.last_loaded_data = Path(data_state.filename).name if data_state.filename else ""
    drawer_menu.refresh()
    ui.navigate.to('/step-debug')


def file_buttons(files, on_pick, icon):
    if not files:
        ui.label('No files found').classes('text-slate-500')
    for f in files:
        with ui.button(on_click=lambda f=f: on_pick(f)).classes('flex-none w-full p-3 justify-start text-lg border').props('flat color=white no-caps'):
            ui.icon(icon).classes('mr-2')
            ui.label(Path(f).name).classes('text-lg')


# --- THE LAYOUT ---
def content():
    config = app_state.config

    with ui.row().classes('w-full h-full no-wrap p-2 gap-4'):
        # LEFT SIDEBAR
        with ui.card().classes('w-1/4 h-full bg-slate-800 border-slate-700'):
            with ui.scroll_area().classes('w-full flex-grow'):
                ui.label('Programs').classes('text-xl font-bold mb-4')
                file_buttons(FileLoader.list_files(config.programs_dir), load_program, 'file_open')

                ui.label('Data images').classes('text-xl font-bold mt-6 mb-4')
                file_buttons(FileLoader.list_files(config.data_dir), load_data, 'description')
                ui.button('Clear data', icon='delete', on_click=clear_data).props('flat').classes('text-lg')

        # RIGHT SIDE: EDITOR
        with ui.column().classes('w-3/4 h-full'):
            with ui.row().classes('w-full no-wrap gap-4'):
                ui.textarea(label='Assembly').bind_value(loaded_program_state, 'content') \
                    .props('dark outlined autogrow').classes('w-1/2 font-mono text-lg')
                with ui.card().classes('w-1/2 bg-slate-900 p-0 overflow-auto'):
                    machine_code_viewer()

            with ui.row().classes('w-full gap-4'):
                ui.button('Assemble', icon='extension', on_click=assemble).classes('font-bold').props('size=lg')
                ui.button('Load into simulator', icon='memory', on_click=commit_to_simulator) \
                    .bind_enabled_from(loaded_program_state, 'ready') \
                    .classes('bg-blue-600 font-bold').props('size=lg')

            with ui.card().classes('w-full bg-slate-800 border-slate-700 p-4'):
                data_summary()
