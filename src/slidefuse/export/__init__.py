from .mask import render_inpaint_mask, text_boxes
from .overlay import draw_fusion_debug
