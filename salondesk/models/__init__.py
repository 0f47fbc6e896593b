from salondesk.models.material import Material, MaterialGroup
from salondesk.models.inventory import MaterialMovement, StockTransaction
from salondesk.models.order import Order, OrderItem
from salondesk.models.client import Client, ClientGroup, ClientNote, HomeProduct
from salondesk.models.service import Service, ServiceGroup
from salondesk.models.visit import Visit, VisitMaterial, VisitService
