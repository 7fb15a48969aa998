from nicegui import ui

from mips_datapath.backend.schemes import MemoryAccessError, REGISTER_COUNT
from mips_datapath.backend.instructions import reg_name
from mips_datapath.state import app_state, data_state, loaded_program_state
from mips_datapath.state import step_by_step_state as step_state


def refresh_all():
    top_bar_info.refresh()
    register_grid.refresh()
    memory_list.refresh()
    datapath_info.refresh()


def perform_step():
    """
    Executes one cycle on the loaded CPU and refreshes the views.
    A halted program is reloaded on the next press.
    """
    if not step_state.started:
        ui.notify("Load a program first", type='warning')
        return
    if step_state.halted:
        restart()
        return

    try:
        trace = step_state.step()
    except MemoryAccessError as e:
        ui.notify(f"Memory fault: {e}", type='negative')
        return

    if trace is None:
        ui.notify(f"{step_state.result}. Press again to restart.", color='green')
    else:
        ui.notify(trace.mnemonic, color='blue', position='top-right', timeout=300)
    refresh_all()


def run_to_halt():
    if not step_state.started:
        ui.notify("Load a program first", type='warning')
        return
    try:
        result = step_state.run()
    except MemoryAccessError as e:
        ui.notify(f"Memory fault: {e}", type='negative')
    else:
        ui.notify(str(result), color='green')
    refresh_all()


def restart():
    if loaded_program_state.machine_code is None:
        return
    step_state.start(loaded_program_state.machine_code, data_state.words or None, app_state.config)
    ui.notify("CPU reset", color='blue', position='top-right', timeout=500)
    refresh_all()


# --- UI COMPONENTS ---

def ui_hex_box(label: str, value: int, highlight: bool = False):
    """Render a single register cell."""
    bg_color = 'bg-green-900 border-green-500' if highlight else 'bg-slate-800 border-slate-700'
    text_color = 'text-green-300' if highlight else 'text-slate-400'

    with ui.column().classes(f'{bg_color} border p-2 rounded items-center justify-center w-full'):
        ui.label(label).classes(f'{text_color} uppercase font-bold text-xl')
        ui.label(f'0x{value:08X}').classes('text-white font-mono text-xl')


def ui_kv_row(key: str, value):
    with ui.row().classes('w-full justify-between items-center border-b border-slate-700 py-1'):
        ui.label(key).classes('text-slate-400 text-lg')
        val_str = str(value).replace('\n', ' | ')
        color = 'text-green-400' if val_str == '1' else 'text-white'
        if val_str == '0':
            color = 'text-slate-500'
        ui.label(val_str).classes(f'font-mono text-lg {color} text-right')


# --- REFRESHABLE COMPONENTS ---

@ui.refreshable
def register_grid():
    changed = step_state.changed_reg[0] if step_state.changed_reg else None
    with ui.grid(columns=4).classes('w-full gap-3'):
        for i in range(REGISTER_COUNT):
            name = reg_name(i)
            value = step_state.cpu.registers.read(i) if step_state.cpu else 0
            ui_hex_box(f"{name} (${i})", value, highlight=(name == changed))


@ui.refreshable
def memory_list():
    rows = []
    if step_state.cpu:
        for addr, val in step_state.cpu.data_memory.get_memory_snapshot().items():
            rows.append({'address': f"0x{addr:08X}", 'data': f"0x{val:08X}", 'dec': str(val)})

    with ui.card().classes('w-full bg-slate-900 p-0 overflow-hidden'):
        ui.aggrid({
            'columnDefs': [
                {'headerName': 'Address', 'field': 'address', 'sortable': False},
                {'headerName': 'Data', 'field': 'data'},
                {'headerName': 'Decimal', 'field': 'dec'},
            ],
            'rowData': rows,
        }).classes('w-full h-[600px] text-xl')


@ui.refreshable
def datapath_info():
    trace = step_state.trace
    if trace is None:
        ui.label("No cycle executed yet").classes('text-red-400 p-4')
        return

    with ui.expansion('Components', icon='settings_input_component') \
            .classes('w-full bg-slate-800 mb-2 text-white border border-slate-700 text-2xl') \
            .props('default-opened'):
        with ui.column().classes('w-full p-4 gap-1'):
            for group, text in step_state.cpu.return_group_string_dict(trace).items():
                ui_kv_row(group.replace('_', ' ').title(), text)

    with ui.expansion('Control Signals', icon='tune') \
            .classes('w-full bg-slate-800 mb-2 text-white border border-slate-700 text-2xl'):
        with ui.column().classes('w-full p-4 gap-1'):
            for name, value in trace.control.to_dict().items():
                ui_kv_row(name.replace('_', ' ').title(), value)


@ui.refreshable
def top_bar_info():
    """Cycle count, current instruction and the register/memory badges."""
    with ui.row().classes('items-center gap-4'):
        if step_state.changed_reg:
            with ui.row().classes('items-center gap-2 bg-slate-900 px-3 py-1 rounded border border-slate-600'):
                ui.icon('edit').classes('text-green-400')
                ui.label(" ".join(step_state.changed_reg)).classes('text-green-400 font-mono')

        if step_state.atomic_mem_transaction:
            with ui.row().classes('items-center gap-2 bg-slate-900 px-3 py-1 rounded border border-slate-600'):
                ui.icon('memory').classes('text-blue-400')
                ui.label(step_state.atomic_mem_transaction.cmpct_str()).classes('text-blue-400 font-mono')

        if step_state.trace:
            ui.label(step_state.trace.mnemonic).classes('text-white font-mono text-lg px-2')
        if step_state.halted:
            ui.label(str(step_state.result.halt_reason)).classes('text-yellow-400 font-mono text-lg px-2')
        pc = step_state.cpu.pc if step_state.cpu else 0
        ui.label(f"PC: 0x{pc:08X}  Cycle: {step_state.current_step}").classes('text-slate-400 font-mono text-lg px-2')


# --- MAIN PAGE LAYOUT ---

def content():
    with ui.column().classes('w-full h-screen no-wrap gap-0 overflow-hidden bg-black'):

        with ui.row().classes('w-full h-auto bg-slate-800 border-b border-slate-600 p-2 items-center justify-between'):
            with ui.row().classes('items-center gap-4'):
                with ui.tabs().classes('text-white bg-slate-700 rounded-lg') as tabs:
                    t_regs = ui.tab('Registers')
                    t_mem = ui.tab('Memory')
                    t_path = ui.tab('Datapath')

                ui.separator().props('vertical')

                ui.button('Step', icon='play_arrow', on_click=perform_step).props('color=blue')
                ui.button('Run', icon='fast_forward', on_click=run_to_halt).props('color=green')
                ui.button('Reset', icon='restart_alt', on_click=restart).props('color=grey')

            top_bar_info()

        with ui.column().classes('w-full flex-grow bg-black overflow-hidden'):
            with ui.tab_panels(tabs, value=t_regs).classes('w-full h-full bg-transparent text-white'):

                with ui.tab_panel(t_regs).classes('w-full h-full p-0'):
                    with ui.scroll_area().classes('w-full h-full p-6'):
                        ui.label('Register File').classes('text-xl text-slate-300 mb-4')
                        register_grid()

                with ui.tab_panel(t_mem).classes('w-full h-full p-0'):
                    with ui.scroll_area().classes('w-full h-full p-6'):
                        ui.label('Data Memory (non-zero words)').classes('text-xl text-slate-300 mb-4')
                        memory_list()

                with ui.tab_panel(t_path).classes('w-full h-full p-0'):
                    with ui.scroll_area().classes('w-full h-full p-6'):
                        ui.label('Last Cycle').classes('text-xl text-slate-300 mb-4')
                        datapath_info()
