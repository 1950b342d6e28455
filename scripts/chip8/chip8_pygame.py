import argparse
import sys

import os
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
)

from chip8 import SCREEN_HEIGHT, SCREEN_WIDTH, Chip8, Chip8Error, Quirks, disassemble_rom


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0,
    K_1: 0x1,
    K_2: 0x2,
    K_3: 0x3,
    K_4: 0x4,
    K_5: 0x5,
    K_6: 0x6,
    K_7: 0x7,
    K_8: 0x8,
    K_9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

SCALE = 15
CPU_HZ = 500
BLUE = pygame.Color(80,69,155,255)
LIGHT_BLUE = pygame.Color(136,126,203,255)


# ******************** UTILITIES SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 interpreter")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("-s", "--scale", type=int, default=SCALE, help="size in pixels of a CHIP-8 pixel")
    parser.add_argument("--hz", type=int, default=CPU_HZ, help="CPU cycles per second")
    parser.add_argument("--dump", metavar="PATH", help="write a memory snapshot to PATH when the run ends")
    parser.add_argument("--disasm", action="store_true", help="print the ROM listing instead of running it")
    quirks = parser.add_argument_group("quirks")
    quirks.add_argument("--shift-vy", action="store_true", help="8XY6/8XYE shift Vy into Vx")
    quirks.add_argument("--flag-first", action="store_true", help="write VF before the result register")
    quirks.add_argument("--logic-resets-vf", action="store_true", help="8XY1/8XY2/8XY3 reset VF")
    quirks.add_argument("--index-overflow-vf", action="store_true", help="FX1E sets VF on overflow")
    quirks.add_argument("--no-index-increment", action="store_true", help="FX55/FX65 leave I unchanged")
    return parser.parse_args(argv)


def quirks_from_args(args):
    return Quirks(
        shift_uses_vy=args.shift_vy,
        flag_after_result=not args.flag_first,
        logic_resets_vf=args.logic_resets_vf,
        index_overflow_sets_vf=args.index_overflow_vf,
        increment_index=not args.no_index_increment,
    )


def read_rom(path):
    with open(path, mode='rb') as f:
        return f.read()


# ******************** I/O SECTION
class Screen:
    """draws a FrameBuffer on a pygame surface, the frame buffer is only read"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLUE, fg_color=LIGHT_BLUE, surface=None):
        self.w, self.h, self.scale = w, h, s
        self.background = bg_color
        self.foreground = fg_color
        if surface is None:
            surface = pygame.display.set_mode((w * self.scale, h * self.scale))
        self.surface = surface
        self.surface.fill(self.background)

    def write_pixel(self, x, y, color):
        pygame.draw.rect(
            self.surface,
            self.background if color==0 else self.foreground,
            (x * self.scale, y * self.scale, self.scale, self.scale)
        )

    def render(self, framebuffer):
        self.surface.fill(self.background)
        for x, y in framebuffer.lit():
            self.write_pixel(x, y, 1)

    @staticmethod
    def refresh():
        pygame.display.flip()


class PygameHost:
    """
    input side of the host: the quit signal comes from the window events (close button or ESC),
    the keys are read from the live keyboard state so a key counts as long as it is held down
    """
    def __init__(self, events=None, key_state=None, key_mappings=KEY_MAPPINGS):
        self.events = events if events is not None else pygame.event.get
        self.key_state = key_state if key_state is not None else pygame.key.get_pressed
        self.key_mappings = key_mappings
        self.running = True

    def poll(self):
        for event in self.events():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                self.running = False
        state = self.key_state()
        keys = frozenset(k for key, k in self.key_mappings.items() if state[key])
        return keys, self.running


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    rom = read_rom(args.file)
    if args.disasm:
        for address, opcode, mnemonic in disassemble_rom(rom):
            print(f"0x{address:04x}    {opcode:04x}    {mnemonic}")
        return
    try:
        chip = Chip8(rom, host=PygameHost(), quirks=quirks_from_args(args))
    except Chip8Error as err:
        sys.exit(f"********** THE ROM COULD NOT BE LOADED\n{err}")
    # pygame initialization
    pygame.init()
    clock = pygame.time.Clock()
    pygame.display.set_caption(os.path.basename(args.file))
    screen = Screen(s=args.scale)
    screen.refresh()
    # emulation loop
    try:
        while chip.running:
            clock.tick(args.hz)
            chip.cycle()        # emulate one machine cycle (input, fetch, decode, execute, timers)
            if chip.redraw:
                screen.render(chip.screen)
                screen.refresh()
    except Chip8Error as err:
        sys.exit(f"********** THE EMULATOR CRASHED WITH THE FOLLOWING STATE\n{err}\n{chip.info()}\n{chip}")
    finally:
        if args.dump:
            with open(args.dump, mode='wb') as f:
                chip.dump(f)
        pygame.quit()


if __name__ == "__main__":
    main()
