# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
# https://chip-8.github.io/links/
#
# COMPATIBILITY QUIRKS TABLE
# https://games.gulrak.net/cadmium/chip8-opcode-table.html#quirk6
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908
#
# TEST SUITE
# https://github.com/Timendus/chip8-test-suite


import os
import random
import time
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from functools import wraps


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
            0x20, 0x60, 0x20, 0x20, 0x70,  # 1
            0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
            0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
            0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
            0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
            0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
            0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
            0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
            0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
            0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
            0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
            0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
            0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
            0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

FONT_START_ADDRESS = 0x000
FONT_SPRITE_SIZE = 5
ROM_START_ADDRESS = 0x200
MEMORY_SIZE = 4096
STACK_DEPTH = 16
REGISTERS = 16
TIMER_HZ = 60
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64


# ******************** ERRORS SECTION
class Chip8Error(Exception):
    """base class of every error raised by the interpreter"""


class RomLoadError(Chip8Error):
    def __init__(self, size, capacity):
        super().__init__(
            f"The ROM is {size} bytes long but only {capacity} bytes are available from 0x{ROM_START_ADDRESS:03x}"
        )
        self.size = size
        self.capacity = capacity


class ExecutionError(Chip8Error):
    """
    a fatal condition met while running a program
    pc and opcode are filled in by Chip8.cycle() once the error leaves the instruction
    """
    def __init__(self, cause, pc=None, opcode=None):
        super().__init__(cause)
        self.cause = cause
        self.pc = pc
        self.opcode = opcode

    def __str__(self):
        if self.pc is None:
            return self.cause
        opcode = "----" if self.opcode is None else f"{self.opcode:04x}"
        return f"{self.cause} (pc: 0x{self.pc:04x}, opcode: 0x{opcode})"


class UnsupportedOpcodeError(ExecutionError):
    def __init__(self, opcode):
        super().__init__(f"The opcode 0x{opcode:04x} is not supported", opcode=opcode)


class BoundsError(ExecutionError):
    def __init__(self, operation, index, bound):
        super().__init__(f"{operation}: index {index} is outside the valid range 0..{bound - 1}")
        self.operation = operation
        self.index = index
        self.bound = bound


# ******************** CONFIGURATION SECTION
@dataclass(frozen=True)
class Quirks:
    """
    behaviours the original interpreters disagree on, fixed once per engine

    shift_uses_vy:          8XY6/8XYE shift Vy into Vx instead of shifting Vx in place
    flag_after_result:      VF is written after the result register, so with X == F the flag survives
    logic_resets_vf:        8XY1/8XY2/8XY3 set VF to 0
    index_overflow_sets_vf: FX1E sets VF to 1 when I + Vx leaves the 12 bits address space, 0 otherwise
    increment_index:        FX55/FX65 leave I pointing past the last register transferred
    """
    shift_uses_vy: bool = False
    flag_after_result: bool = True
    logic_resets_vf: bool = False
    index_overflow_sets_vf: bool = False
    increment_index: bool = True


# ******************** UTILITIES SECTION
def traced(fn):
    """decorator to print out the ASM of the instruction being executed"""
    @wraps(fn)
    def wrapper_fn(self, instruction):
        if DEBUG:
            print(f"mem_addr: 0x{self.last_pc:04x}    opcode: 0x{instruction.opcode:04x}    "
                  f"instruction: {disassemble(instruction)}")
        return fn(self, instruction)
    return wrapper_fn


# ******************** DECODER SECTION
# op is the opcode with its operands masked out (e.g. 0x8004 for every 8XY4), None when unsupported
Instruction = namedtuple("Instruction", ["opcode", "op", "group", "x", "y", "n", "address", "immediate"])

# WATCH OUT: masks order is important!!!
# the lookup stops at the first mask whose result is a known operation
MASKS = {
    0xFFFF: [0x00E0, 0x00EE],
    0xF0FF: [0xE09E, 0xE0A1, 0xF007, 0xF00A, 0xF015, 0xF018, 0xF01E, 0xF029, 0xF033, 0xF055, 0xF065],
    0xF00F: [0x8000, 0x8001, 0x8002, 0x8003, 0x8004, 0x8005, 0x8006, 0x8007, 0x800E],
    0xF000: [0x0000, 0x1000, 0x2000, 0x3000, 0x4000, 0x5000, 0x6000, 0x7000,
             0x9000, 0xA000, 0xB000, 0xC000, 0xD000],
}


def decode(opcode):
    """split a 16 bits opcode into its fields and find the operation it encodes"""
    op = None
    for mask, ops in MASKS.items():
        if (opcode & mask) in ops:
            op = opcode & mask
            break
    return Instruction(
        opcode=opcode,
        op=op,
        group=(opcode & 0xF000) >> 12,
        x=(opcode & 0x0F00) >> 8,
        y=(opcode & 0x00F0) >> 4,
        n=opcode & 0x000F,
        address=opcode & 0x0FFF,
        immediate=opcode & 0x00FF,
    )


# ******************** DISASSEMBLER SECTION
MNEMONICS = {
    0x00E0: "CLS",
    0x00EE: "RET",
    0x0000: "SYS 0x{address:03x}",
    0x1000: "JP 0x{address:03x}",
    0x2000: "CALL 0x{address:03x}",
    0x3000: "SE V{x:X}, 0x{immediate:02x}",
    0x4000: "SNE V{x:X}, 0x{immediate:02x}",
    0x5000: "SE V{x:X}, V{y:X}",
    0x6000: "LD V{x:X}, 0x{immediate:02x}",
    0x7000: "ADD V{x:X}, 0x{immediate:02x}",
    0x8000: "LD V{x:X}, V{y:X}",
    0x8001: "OR V{x:X}, V{y:X}",
    0x8002: "AND V{x:X}, V{y:X}",
    0x8003: "XOR V{x:X}, V{y:X}",
    0x8004: "ADD V{x:X}, V{y:X}",
    0x8005: "SUB V{x:X}, V{y:X}",
    0x8006: "SHR V{x:X}, V{y:X}",
    0x8007: "SUBN V{x:X}, V{y:X}",
    0x800E: "SHL V{x:X}, V{y:X}",
    0x9000: "SNE V{x:X}, V{y:X}",
    0xA000: "LD I, 0x{address:03x}",
    0xB000: "JP V0, 0x{address:03x}",
    0xC000: "RND V{x:X}, 0x{immediate:02x}",
    0xD000: "DRW V{x:X}, V{y:X}, {n}",
    0xE09E: "SKP V{x:X}",
    0xE0A1: "SKNP V{x:X}",
    0xF007: "LD V{x:X}, DT",
    0xF00A: "LD V{x:X}, K",
    0xF015: "LD DT, V{x:X}",
    0xF018: "LD ST, V{x:X}",
    0xF01E: "ADD I, V{x:X}",
    0xF029: "LD F, V{x:X}",
    0xF033: "LD B, V{x:X}",
    0xF055: "LD [I], V{x:X}",
    0xF065: "LD V{x:X}, [I]",
}


def disassemble(instruction):
    """return the mnemonic of a decoded instruction"""
    if instruction.op is None:
        return f"??? 0x{instruction.opcode:04x}"
    return MNEMONICS[instruction.op].format(**instruction._asdict())


def disassemble_rom(rom, start=ROM_START_ADDRESS):
    """yield (address, opcode, mnemonic) for every word of a ROM, an odd trailing byte is padded with 0"""
    rom = bytes(rom)
    if len(rom) % 2:
        rom += b"\x00"
    for offset in range(0, len(rom), 2):
        opcode = rom[offset] << 8 | rom[offset + 1]
        yield start + offset, opcode, disassemble(decode(opcode))


# ******************** I/O SECTION
class FrameBuffer:
    """64x32 monochrome pixel grid, sprites are XORed onto it and wrap around both edges"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.buffer = [0] * h * w

    def read_pixel(self, x, y):
        """return 1 if pixel is ON, return 0 if pixel is OFF"""
        return self.buffer[(y % self.h) * self.w + (x % self.w)]

    def clear(self):
        self.buffer = [0] * self.h * self.w

    def draw(self, x, y, sprite_rows):
        """XOR the sprite rows at (x, y) and return True if any pixel got erased"""
        collision = False
        for i, sprite_byte in enumerate(sprite_rows):
            y_coordinate = (y + i) % self.h
            for j in range(8):      # most significant bit first
                if not sprite_byte & (0x80 >> j):
                    continue
                x_coordinate = (x + j) % self.w
                pos = y_coordinate * self.w + x_coordinate
                # the only case when a pixel gets erased is when it was ON and is turned ON again
                if self.buffer[pos]:
                    collision = True
                self.buffer[pos] ^= 1
        return collision

    def lit(self):
        """yield the (x, y) coordinates of every pixel which is ON"""
        for pos, pixel in enumerate(self.buffer):
            if pixel:
                yield pos % self.w, pos // self.w

    def __str__(self):
        return "\n".join(
            "".join("#" if p else "." for p in self.buffer[row * self.w:(row + 1) * self.w])
            for row in range(self.h)
        )


class Keypad:
    """the 16 keys (0x0-0xF) currently held down, replaced as a whole on every cycle"""
    def __init__(self):
        self.pressed_keys = frozenset()

    def __getitem__(self, key):
        return key in self.pressed_keys

    def update(self, keys):
        keys = frozenset(keys)
        for key in keys:
            if not 0x0 <= key <= 0xF:
                raise ValueError(f"CHIP-8 keys go from 0x0 to 0xF, got {key!r}")
        self.pressed_keys = keys

    def untouched(self):
        return len(self.pressed_keys) == 0

    def first(self):
        """get the lowest key currently pressed"""
        return min(self.pressed_keys)

    def __str__(self):
        return "[" + ", ".join(f"{k:X}" for k in sorted(self.pressed_keys)) + "]"


class HeadlessHost:
    """host without a window: keys and the quit signal are set by hand"""
    def __init__(self, keys=(), running=True):
        self.keys = set(keys)
        self.running = running

    def press(self, *keys):
        self.keys.update(keys)

    def release(self, *keys):
        self.keys.difference_update(keys)

    def quit(self):
        self.running = False

    def poll(self):
        return frozenset(self.keys), self.running


class Timers:
    """
    delay (dt) and sound (st) timers
    both count down by one every 1/60 s of wall clock time, whatever the number of cycles in between
    """
    def __init__(self, clock=time.perf_counter, hz=TIMER_HZ):
        self.clock = clock
        self.hz = hz
        self.dt = 0
        self.st = 0
        self.start_time = clock()
        self.ticks = 0      # intervals already applied since start_time

    def update(self):
        """apply the intervals elapsed since the last update and return how many they were"""
        elapsed = int((self.clock() - self.start_time) * self.hz)
        ticks, self.ticks = elapsed - self.ticks, elapsed
        if ticks > 0:
            self.dt = max(0, self.dt - ticks)
            self.st = max(0, self.st - ticks)
        return ticks


# ******************** MEMORY SECTION
# ********** WRAPS A LIST TO REPRESENT A STACK WITH A LIMITED SIZE OF 16 ADDRESSES
class Stack:
    def __init__(self, depth=STACK_DEPTH):
        self.addr_list = [0] * depth
        self.size = 0

    def append(self, address):
        if self.size >= len(self.addr_list):
            raise BoundsError("push", self.size, len(self.addr_list))
        self.addr_list[self.size] = address & 0xFFF
        self.size += 1

    def pop(self):
        if self.size == 0:
            raise BoundsError("pop", -1, len(self.addr_list))
        self.size -= 1
        return self.addr_list[self.size]

    def __len__(self):
        return self.size

    def __str__(self):
        return "[" + ", ".join(f"0x{a:03x}" for a in self.addr_list[:self.size]) + "]"


# ********** WRAPS A BYTEARRAY TO REPRESENT THE MAIN MEMORY WITH A LIMITED SIZE OF 4KB
class Memory:
    def __init__(self):
        self.inner = bytearray(MEMORY_SIZE)
        self.inner[FONT_START_ADDRESS:FONT_START_ADDRESS+len(C8_FONTS)] = bytes(C8_FONTS)

    def _check(self, operation, index, count):
        if index < 0:
            raise BoundsError(operation, index, len(self.inner))
        if index + count > len(self.inner):
            raise BoundsError(operation, index + count - 1, len(self.inner))

    def read(self, index, count, operation="read"):
        self._check(operation, index, count)
        return bytes(self.inner[index:index+count])

    def write(self, index, values, operation="write"):
        values = bytes(values)
        self._check(operation, index, len(values))
        self.inner[index:index+len(values)] = values

    def read_word(self, index):
        """read a big endian opcode"""
        high, low = self.read(index, 2, "fetch")
        return high << 8 | low

    def load_rom(self, rom):
        """copy the ROM bytes from ROM_START_ADDRESS on, raise RomLoadError if they don't fit"""
        rom = bytes(rom)
        capacity = len(self.inner) - ROM_START_ADDRESS
        if len(rom) > capacity:
            raise RomLoadError(len(rom), capacity)
        self.inner[ROM_START_ADDRESS:ROM_START_ADDRESS+len(rom)] = rom
        if DEBUG: print(f"A ROM of {len(rom)} bytes has been loaded successfully")

    def snapshot(self):
        return bytes(self.inner)


# ******************** CPU SECTION
class State(Enum):
    RUNNING = "running"
    AWAITING_KEY = "awaiting key"


class Chip8:
    def __init__(self, rom=b"", host=None, quirks=None, screen=None, keypad=None, timers=None, rng=None):
        self.mem = Memory()
        self.mem.load_rom(rom)
        self.stack = Stack()
        self.v_regs = [0] * REGISTERS
        self.pc = ROM_START_ADDRESS
        self.idx = 0    # specify where the sprites reside in memory
        self.quirks = quirks if quirks is not None else Quirks()
        self.host = host if host is not None else HeadlessHost()
        self.screen = screen if screen is not None else FrameBuffer()
        self.keypad = keypad if keypad is not None else Keypad()
        self.timers = timers if timers is not None else Timers()
        self.rng = rng if rng is not None else random.Random()
        self.state = State.RUNNING
        self.key_register = None    # register waiting for a key while in State.AWAITING_KEY
        self.running = True
        self.halted = False
        self.redraw = False
        self.cycles = 0
        self.last_pc = self.pc
        self.opcode = None
        self.instructions = {
            0x00E0: self._clear_screen,
            0x00EE: self._return,
            0x0000: self._sys_call,
            0x1000: self._jump,
            0x2000: self._call_addr,
            0x3000: self._skip_if_eq,
            0x4000: self._skip_if_not_eq,
            0x5000: self._skip_if_eq_regs,
            0x6000: self._set_vk,
            0x7000: self._add_to_vk,
            0x8000: self._set_vx_to_vy,
            0x8001: self._set_vx_or_vy,
            0x8002: self._set_vx_and_vy,
            0x8003: self._set_vx_xor_vy,
            0x8004: self._add_vx_vy,
            0x8005: self._sub_vx_vy,
            0x8006: self._shr,
            0x8007: self._subn_vx_vy,
            0x800E: self._shl,
            0x9000: self._skip_if_not_eq_regs,
            0xA000: self._set_idx,
            0xB000: self._jump_plus,
            0xC000: self._random_byte_and,
            0xD000: self._to_screen,
            0xE09E: self._skip_if_pressed,
            0xE0A1: self._skip_if_not_pressed,
            0xF007: self._set_vx_dt,
            0xF00A: self._wait_keypress,
            0xF015: self._set_dt_vx,
            0xF018: self._set_st,
            0xF01E: self._add_to_idx,
            0xF029: self._select_char,
            0xF033: self._bcd_repr,
            0xF055: self._store_vregs,
            0xF065: self._load_vregs,
        }

    @property
    def dt(self):
        return self.timers.dt

    @property
    def st(self):
        return self.timers.st

    def __str__(self):
        registers = " ".join(f"V{i:X}:{v:02x}" for i, v in enumerate(self.v_regs))
        registers = f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | VARIABLE_REGISTERS:{registers}"
        stack = f"STACK:{self.stack}"
        timers = f"DT:{self.dt} | ST:{self.st}"
        flags = f"STATE:{self.state.value} | CYCLES:{self.cycles} | KEYPAD:{self.keypad}"
        return f"{registers}\n{stack}\n{timers}\n{flags}"

    def info(self):
        """one line trace of the last fetched instruction"""
        if self.opcode is None:
            return f"PC:{self.last_pc:04X} OP:---- CYCLE:{self.cycles} INS: -"
        ins = disassemble(decode(self.opcode))
        return f"PC:{self.last_pc:04X} OP:{self.opcode:04X} CYCLE:{self.cycles} INS: {ins}"

    def dump(self, sink):
        """write the whole 4KB of memory to a binary file-like object"""
        sink.write(self.mem.snapshot())

    def cycle(self):
        """emulate one machine cycle (input, fetch, decode, execute, timers)"""
        if self.halted:
            raise ExecutionError("The machine has halted", self.last_pc, self.opcode)
        self.redraw = False
        keys, self.running = self.host.poll()
        self.keypad.update(keys)
        try:
            if self.state is State.AWAITING_KEY:
                self._resume_on_keypress()
            else:
                self.last_pc = self.pc
                self.opcode = None
                # fetch (each instruction is two bytes long)
                self.opcode = self.mem.read_word(self.pc)
                instruction = decode(self.opcode)
                self._goto_next_instruction()
                self._execute(instruction)
                if self.state is State.RUNNING:     # FX0A suspending keeps PC where it was
                    self.cycles += 1
        except ExecutionError as err:
            err.pc, err.opcode = self.last_pc, self.opcode
            self.halted = True
            self.running = False
            raise
        self.timers.update()

    @traced
    def _execute(self, instruction):
        if instruction.op is None:
            raise UnsupportedOpcodeError(instruction.opcode)
        self.instructions[instruction.op](instruction)

    def _goto_next_instruction(self):
        self.pc += 0x2

    def _set_with_flag(self, x, value, flag):
        """store an ALU result in Vx and its flag in VF, in the order the quirks ask for"""
        if self.quirks.flag_after_result:
            self.v_regs[x] = value
            self.v_regs[0xF] = flag
        else:
            self.v_regs[0xF] = flag
            self.v_regs[x] = value

    def _clear_screen(self, ins):
        self.screen.clear()
        self.redraw = True

    def _return(self, ins):
        """return from a subroutine"""
        self.pc = self.stack.pop()

    def _sys_call(self, ins):
        """jump to a machine code routine of the host, ignored by modern interpreters"""

    def _jump(self, ins):
        self.pc = ins.address

    def _call_addr(self, ins):
        self.stack.append(self.pc)
        self.pc = ins.address

    def _skip_if_eq(self, ins):
        if self.v_regs[ins.x] == ins.immediate:
            self._goto_next_instruction()

    def _skip_if_not_eq(self, ins):
        if self.v_regs[ins.x] != ins.immediate:
            self._goto_next_instruction()

    def _skip_if_eq_regs(self, ins):
        if self.v_regs[ins.x] == self.v_regs[ins.y]:
            self._goto_next_instruction()

    def _skip_if_not_eq_regs(self, ins):
        if self.v_regs[ins.x] != self.v_regs[ins.y]:
            self._goto_next_instruction()

    def _set_vk(self, ins):
        """set the value of one of the 16 variable registers, Vx"""
        self.v_regs[ins.x] = ins.immediate

    def _add_to_vk(self, ins):
        """add to the value already present in one of the variable registers, VF is untouched"""
        self.v_regs[ins.x] = (self.v_regs[ins.x] + ins.immediate) & 0xFF

    def _set_vx_to_vy(self, ins):
        self.v_regs[ins.x] = self.v_regs[ins.y]

    def _set_vx_or_vy(self, ins):
        self.v_regs[ins.x] |= self.v_regs[ins.y]
        if self.quirks.logic_resets_vf:
            self.v_regs[0xF] = 0

    def _set_vx_and_vy(self, ins):
        self.v_regs[ins.x] &= self.v_regs[ins.y]
        if self.quirks.logic_resets_vf:
            self.v_regs[0xF] = 0

    def _set_vx_xor_vy(self, ins):
        self.v_regs[ins.x] ^= self.v_regs[ins.y]
        if self.quirks.logic_resets_vf:
            self.v_regs[0xF] = 0

    def _add_vx_vy(self, ins):
        """set Vx = Vx + Vy, VF = carry"""
        total = self.v_regs[ins.x] + self.v_regs[ins.y]
        self._set_with_flag(ins.x, total & 0xFF, 1 if total > 0xFF else 0)

    def _sub_vx_vy(self, ins):
        """set Vx = Vx - Vy, VF = NOT borrow"""
        vx, vy = self.v_regs[ins.x], self.v_regs[ins.y]
        self._set_with_flag(ins.x, (vx - vy) & 0xFF, 1 if vx >= vy else 0)

    def _subn_vx_vy(self, ins):
        """set Vx = Vy - Vx, VF = NOT borrow"""
        vx, vy = self.v_regs[ins.x], self.v_regs[ins.y]
        self._set_with_flag(ins.x, (vy - vx) & 0xFF, 1 if vy >= vx else 0)

    def _shift_operand(self, ins):
        return self.v_regs[ins.y] if self.quirks.shift_uses_vy else self.v_regs[ins.x]

    def _shr(self, ins):
        """set Vx = operand SHR 1, VF = the bit shifted out"""
        operand = self._shift_operand(ins)
        self._set_with_flag(ins.x, operand >> 1, operand & 0x1)

    def _shl(self, ins):
        """set Vx = operand SHL 1, VF = the bit shifted out"""
        operand = self._shift_operand(ins)
        self._set_with_flag(ins.x, (operand << 1) & 0xFF, (operand & 0x80) >> 7)

    def _set_idx(self, ins):
        self.idx = ins.address

    def _jump_plus(self, ins):
        self.pc = ins.address + self.v_regs[0x0]

    def _random_byte_and(self, ins):
        self.v_regs[ins.x] = self.rng.randint(0, 255) & ins.immediate

    def _to_screen(self, ins):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        sprite = self.mem.read(self.idx, ins.n, "draw")
        collision = self.screen.draw(self.v_regs[ins.x], self.v_regs[ins.y], sprite)
        self.v_regs[0xF] = 1 if collision else 0
        self.redraw = True

    def _skip_if_pressed(self, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        if self.keypad[self.v_regs[ins.x]]:
            self._goto_next_instruction()

    def _skip_if_not_pressed(self, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        if not self.keypad[self.v_regs[ins.x]]:
            self._goto_next_instruction()

    def _wait_keypress(self, ins):
        """wait for a key press and store its value in Vx"""
        if self.keypad.untouched():
            self.state = State.AWAITING_KEY
            self.key_register = ins.x
            self.pc = self.last_pc      # stay on the same instruction until a key is pressed
        else:
            self.v_regs[ins.x] = self.keypad.first()

    def _resume_on_keypress(self):
        if self.keypad.untouched():
            return
        self.v_regs[self.key_register] = self.keypad.first()
        self.state = State.RUNNING
        self.key_register = None
        self._goto_next_instruction()
        self.cycles += 1

    def _set_vx_dt(self, ins):
        self.v_regs[ins.x] = self.timers.dt

    def _set_dt_vx(self, ins):
        self.timers.dt = self.v_regs[ins.x]

    def _set_st(self, ins):
        self.timers.st = self.v_regs[ins.x]

    def _add_to_idx(self, ins):
        """set I = I + Vx, kept within 12 bits"""
        total = self.idx + self.v_regs[ins.x]
        if self.quirks.index_overflow_sets_vf:
            self.v_regs[0xF] = 1 if total > 0xFFF else 0
        self.idx = total & 0xFFF

    def _select_char(self, ins):
        """set I to location of sprite for digit Vx"""
        self.idx = FONT_START_ADDRESS + self.v_regs[ins.x] * FONT_SPRITE_SIZE

    def _bcd_repr(self, ins):
        """hundreds digit of Vx in memory at I, the tens digit at I+1, the ones digit at I+2"""
        value = self.v_regs[ins.x]
        self.mem.write(self.idx, [value // 100, (value // 10) % 10, value % 10], "bcd")

    def _store_vregs(self, ins):
        """store registers V0 through Vx (included) in memory starting at location I"""
        self.mem.write(self.idx, self.v_regs[:ins.x+1], "store registers")
        if self.quirks.increment_index:
            self.idx += ins.x + 1

    def _load_vregs(self, ins):
        """read registers V0 through Vx (included) from memory starting at location I"""
        self.v_regs[:ins.x+1] = list(self.mem.read(self.idx, ins.x + 1, "load registers"))
        if self.quirks.increment_index:
            self.idx += ins.x + 1
