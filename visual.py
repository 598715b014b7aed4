import argparse
import logging
import math
import time

import FreeSimpleGUI as sg
import pygame

from config import CanvasSize, ConfigDebouncer, SimulationConfig
from errors import ConfigurationError
from light import PhotonPulse
from simulation import SimulationState, WaveSimulation

logger = logging.getLogger(__name__)


def dot_radius(intensity, cell_size):
    """Radius of a field dot: 40 * intensity, capped at the cell size."""
    radius = 40 * intensity
    if radius > 20:
        return cell_size
    if radius > 3:
        return math.floor(radius + 0.5)
    return radius


def dot_color(intensity, intensity_change):
    """HSL of a field dot: hue from the intensity change, saturation and lightness from the intensity."""
    color_factor = min(intensity, 1)
    hue = (-20 + (1 - intensity_change) * 300) % 360
    saturation = min(max(20 + 80 * color_factor, 0), 100)
    lightness = min(max(30 + 60 * color_factor, 0), 100)
    return hue, saturation, lightness


class VisualizationManager:
    def __init__(self, width, height, config=None, fps=60, light_size=(300, 60)):
        self.WIDTH, self.HEIGHT = width, height
        self.fps = fps
        self.config = config or SimulationConfig()
        self.BACKGROUND = (0, 0, 0)
        self.VELOCITY_COLOR = (255, 255, 255)
        self.ACCELERATION_COLOR = (176, 26, 0)
        self.CHARGE_COLOR = (255, 255, 255)
        self.LIGHT_COLOR = (176, 26, 0)
        self.fonts = {}
        self.window = None
        self.values = {}

        self.simulation = WaveSimulation(on_error=self.report_error)
        self.photon = PhotonPulse(self.config.propagation_speed, light_size[0], light_size[1],
                                  tick_rate=self.config.tick_rate)
        self.debouncer = ConfigDebouncer()
        self.pending_canvas = CanvasSize(width, height)

        pygame.init()
        self.screen = pygame.display.set_mode((self.WIDTH, self.HEIGHT), pygame.RESIZABLE)
        pygame.display.set_caption("Retarded Field of an Accelerating Charge")
        self.clock = pygame.time.Clock()
        self.light_surface = pygame.Surface(light_size, pygame.SRCALPHA)

#############################################################################################
    def run_simulation(self):
        self.setup_simulation_gui()
        self.simulation.configure(self.config, CanvasSize(self.WIDTH, self.HEIGHT))
        self.run_main_loop()
        self.shutdown_simulation()

    def setup_simulation_gui(self):
        layout = [[sg.Text('Speed of light'), sg.Input(str(self.config.propagation_speed), key='speed-of-light', size=(8, 1))],
                  [sg.Text('Cell size'), sg.Input(str(self.config.cell_size), key='cell-size', size=(8, 1))],
                  [sg.Text('Field magnitude'), sg.Input(str(self.config.field_magnitude), key='field-magnitude', size=(8, 1))],
                  [sg.Checkbox('Relativistic', key='relativistic', default=True, enable_events=True)],
                  [sg.Button('Apply', key='apply', bind_return_key=True),
                   sg.Button('Pause', key='play-pause'),
                   sg.Button('Next frame', key='next-frame')], ]
        self.window = sg.Window('Simulation Controls', layout, finalize=True)

###################################################################################################
    def run_main_loop(self):
        running = True
        while running:
            event, values = self.window.read(timeout=0)
            if values:
                self.values = values
            if event == sg.WINDOW_CLOSED:
                running = False
            elif event == 'apply':
                self.submit_parameters(values)
            elif event == 'relativistic':
                self.simulation.set_relativistic(values['relativistic'])
            elif event == 'play-pause':
                self.toggle_animation()
            elif event == 'next-frame':
                self.next_frame()
            running = running and self.handle_pygame_events()
            if not running:
                break
            self.apply_pending(time.monotonic())
            if self.debouncer.pending:
                self.draw_loading()
            else:
                result = self.simulation.frame()
                if result is not None and result.ok:
                    self.photon.step()
                self.visualize()
            self.clock.tick(self.fps)

    def submit_parameters(self, values):
        try:
            self.config = self.config.with_inputs(values['speed-of-light'], values['cell-size'],
                                                  values['field-magnitude'])
        except ConfigurationError as e:
            logger.warning("Ignoring simulation inputs: %s", e)
            return
        # Show the clamped values back in the inputs
        self.window['speed-of-light'].update(self.config.propagation_speed)
        self.window['cell-size'].update(self.config.cell_size)
        self.window['field-magnitude'].update(self.config.field_magnitude)
        self.request_reconfigure()

    def request_reconfigure(self):
        self.simulation.pause()
        self.debouncer.submit((self.config, self.pending_canvas), time.monotonic())

    def apply_pending(self, now):
        pending = self.debouncer.due(now)
        if pending is None:
            return
        config, canvas = pending
        try:
            self.simulation.configure(config, canvas)
        except ConfigurationError as e:
            logger.error("Reconfiguration rejected: %s", e)
            return
        self.WIDTH, self.HEIGHT = canvas.width, canvas.height
        self.photon.update(config.propagation_speed, self.photon.width, self.photon.height)
        self.update_play_button()

    def toggle_animation(self):
        if self.simulation.state is not SimulationState.READY:
            return
        self.simulation.toggle()
        self.update_play_button()

    def next_frame(self):
        # Only steps while paused
        if self.simulation.is_running() or self.debouncer.pending:
            return
        result = self.simulation.single_step()
        if result.ok:
            self.photon.step()
        self.visualize()

    def update_play_button(self):
        if self.window is not None:
            self.window['play-pause'].update('Pause' if self.simulation.is_running() else 'Play')

    def handle_pygame_events(self):
        pointer = self.simulation.pointer
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            elif event.type == pygame.VIDEORESIZE:
                self.screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                self.pending_canvas = CanvasSize(event.w, event.h)
                self.request_reconfigure()
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                pointer.press(*event.pos)
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                pointer.release()
            elif event.type == pygame.MOUSEMOTION:
                pointer.move(*event.pos)
            elif event.type in (pygame.FINGERDOWN, pygame.FINGERMOTION):
                # Finger coordinates are normalised to the window size
                width, height = self.screen.get_size()
                pointer.move(event.x * width, event.y * height)
                if event.type == pygame.FINGERDOWN:
                    pointer.press()
            elif event.type == pygame.FINGERUP:
                pointer.release()
            elif event.type == pygame.KEYUP:
                self.handle_key(event)
        return True

    def handle_key(self, event):
        if event.key == pygame.K_p:
            self.toggle_animation()
        elif event.key == pygame.K_n:
            self.next_frame()
        elif event.key == pygame.K_RETURN:
            if event.mod & pygame.KMOD_CTRL:
                self.submit_parameters(self.values)
            else:
                relativistic = not self.simulation.relativistic
                self.simulation.set_relativistic(relativistic)
                self.window['relativistic'].update(relativistic)

##########################################################################################################
    def visualize(self):
        self.screen.fill(self.BACKGROUND)
        if self.simulation.grid is not None:
            self.draw_field(self.simulation.grid)
            self.draw_charge(self.simulation.charge)
        self.draw_light()
        self.draw_status()
        pygame.display.flip()

    def draw_field(self, grid):
        color = pygame.Color(0)
        for center, intensity, change in grid.cells():
            radius = dot_radius(intensity, grid.cell_size)
            if radius <= 0:
                continue
            hue, saturation, lightness = dot_color(intensity, change)
            color.hsla = (hue, saturation, lightness, 100)
            pygame.draw.circle(self.screen, color, (float(center[0]), float(center[1])), radius)

    def draw_charge(self, charge):
        start = tuple(charge.position)
        velocity_end = tuple(charge.position + charge.velocity)
        acceleration_end = tuple(charge.position + 2 * charge.acceleration)
        pygame.draw.line(self.screen, self.VELOCITY_COLOR, start, velocity_end, 2)
        pygame.draw.line(self.screen, self.ACCELERATION_COLOR, start, acceleration_end, 8)
        pygame.draw.circle(self.screen, self.CHARGE_COLOR, start, 10)

    def draw_light(self):
        photon = self.photon
        self.light_surface.fill((0, 0, 0, 0))
        xs, heights = photon.profile()
        points = [(0, photon.half_height)]
        points.extend(zip(xs, photon.half_height - heights))
        points.append((photon.width, photon.half_height))
        pygame.draw.line(self.light_surface, self.LIGHT_COLOR, (0, photon.half_height),
                         (photon.width, photon.half_height))
        pygame.draw.polygon(self.light_surface, self.LIGHT_COLOR, points)
        self.screen.blit(self.light_surface, (10, self.HEIGHT - photon.height - 10))

    def draw_status(self):
        sim = self.simulation
        mode = "relativistic" if sim.relativistic else "instantaneous"
        state = "running" if sim.is_running() else "paused"
        text = self.get_font(18).render(f"c = {self.config.propagation_speed:g}  {mode}  {state}  tick {sim.tick_count}",
                                        True, (254, 254, 254))
        self.screen.blit(text, text.get_rect(topleft=(10, 10)))

    def draw_loading(self):
        self.screen.fill(self.BACKGROUND)
        text = self.get_font(24).render("Loading...", True, (254, 254, 254))
        self.screen.blit(text, text.get_rect(center=(self.WIDTH // 2, self.HEIGHT // 2)))
        pygame.display.flip()

    def report_error(self, error):
        self.update_play_button()
        sg.popup_error(f"Simulation paused: {error}", title="Simulation error", non_blocking=True)

#############################################################################################
    def get_font(self, size):
        """Retrieve a font of the given size, caching it if not already loaded."""
        if size not in self.fonts:
            self.fonts[size] = pygame.font.Font(None, size)
        return self.fonts[size]

    def shutdown_simulation(self):
        self.simulation.dispose()
        try:
            pygame.quit()
        except Exception as e:
            logger.warning("Error shutting down Pygame: %s", e)
        try:
            if self.window:
                self.window.close()
        except Exception as e:
            logger.warning("Error closing the control window: %s", e)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Retarded field of an accelerating point charge")
    parser.add_argument("--width", type=int, default=900)
    parser.add_argument("--height", type=int, default=600)
    parser.add_argument("--speed-of-light", type=float, default=600.0)
    parser.add_argument("--cell-size", type=int, default=30)
    parser.add_argument("--field-magnitude", type=float, default=1.0)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = SimulationConfig.from_inputs(args.speed_of_light, args.cell_size, args.field_magnitude)
    VisualizationManager(args.width, args.height, config).run_simulation()


if __name__ == "__main__":
    main()
