"""
Default channel catalogue and registry bootstrap.
"""

import json
import logging
from typing import Iterable, List

from channel_registry import ChannelRegistry
from models import Channel

logger = logging.getLogger(__name__)


DEFAULT_CHANNELS: List[Channel] = [
    Channel(id="ch-1", name="Addis TV", country="Ethiopia", group="General",
            source_url="https://rrsatrtmp.tulix.tv/addis1/addis1multi.smil/playlist.m3u8"),
    Channel(id="ch-2", name="Adinkra TV", country="Ghana", group="Music",
            source_url="https://59d39900ebfb8.streamlock.net/adinkratvny/adinkratvny/playlist.m3u8"),
    Channel(id="ch-3", name="ADO TV", country="Nigeria", group="Kids",
            source_url="https://strhls.streamakaci.tv/ortb/ortb2-multi/playlist.m3u8"),
    Channel(id="ch-4", name="Africa 24 English", country="Pan-African", group="News",
            source_url="https://edge17.vedge.infomaniak.com/livecast/ik:africa24sport/manifest.m3u8"),
    Channel(id="ch-5", name="Afrokiddos", country="Pan-African", group="Kids",
            source_url="https://weyyak-live.akamaized.net/weyyak_afrokiddos/index.m3u8"),
    Channel(id="ch-6", name="AfroSport Nigeria", country="Nigeria", group="Sports",
            source_url="https://newproxy3.vidivu.tv/vidivu_afrosport/index.m3u8"),
    Channel(id="ch-7", name="Alpha Digital", country="Uganda", group="Religious",
            source_url="https://streamfi-alphatvdgtl1.zettawiseroutes.com:8181/hls/stream.m3u8"),
    Channel(id="ch-8", name="Amani TV", country="Tanzania", group="Culture",
            source_url="https://goccn.cloud/hls/amanitv/index.m3u8"),
    Channel(id="ch-9", name="B+ TV", country="Rwanda", group="Entertainment",
            source_url="https://tv.btnrwanda.com:3432/live/bpluslive.m3u8"),
    Channel(id="ch-10", name="BTV", country="Botswana", group="Entertainment",
            source_url="https://streamfi-alphadgtl1.zettawiseroutes.com:8181/hls/stream.m3u8"),
    Channel(id="ch-11", name="Bukedde TV 1", country="Uganda", group="General",
            source_url="https://stream.hydeinnovations.com/bukedde1flussonic/index.m3u8"),
    Channel(id="ch-12", name="Business 24 Africa", country="Pan-African", group="Business",
            source_url="https://cdn-globecast.akamaized.net/live/eds/business24_tv/hls_video/index.m3u8"),
    Channel(id="ch-13", name="Canal 3 Bénin", country="Benin", group="General",
            source_url="https://live.creacast.com/bluediamond/stream/playlist.m3u8"),
    Channel(id="ch-14", name="Cape Town TV", country="South Africa", group="General",
            source_url="https://cdn.freevisiontv.co.za/sttv/smil:ctv.stream.smil/playlist.m3u8"),
    Channel(id="ch-15", name="CBC TV", country="Kenya", group="General",
            source_url="https://stream.berosat.live:19360/cbc-tv/cbc-tv.m3u8"),
    Channel(id="ch-16", name="CEN Télévision", country="Senegal", group="General",
            source_url="https://strhlslb01.streamakaci.tv/cen/cen-multi/playlist.m3u8"),
    Channel(id="ch-17", name="Chabiba TV", country="Algeria", group="Religious",
            source_url="https://endour.net/hls/RUgLAPCbPdF5oPSTX2Hvl/index.m3u8"),
    Channel(id="ch-18", name="Citizen Extra", country="Kenya", group="General",
            source_url="https://74937.global.ssl.fastly.net/5ea49827ff3b5d7b22708777/live_40c5808063f711ec89a87b62db2ecab5/index.m3u8"),
    Channel(id="ch-19", name="CTV Afrique", country="Ivory Coast", group="General",
            source_url="https://stream.it-innov.com/ctv/index.m3u8"),
    Channel(id="ch-20", name="Dabanga TV", country="Sudan", group="News",
            source_url="https://hls.dabangasudan.org/hls/stream.m3u8"),
    Channel(id="ch-21", name="Dodoma TV", country="Tanzania", group="General",
            source_url="https://goliveafrica.media:9998/live/625965017ed69/index.m3u8"),
    Channel(id="ch-22", name="Dream TV", country="Kenya", group="Religious",
            source_url="https://streamfi-dreamtv1.zettawiseroutes.com:8181/hls/stream.m3u8"),
    Channel(id="ch-23", name="EVI TV", country="Ghana", group="Entertainment",
            source_url="https://stream.berosat.live:19360/evi-tv/evi-tv.m3u8"),
    Channel(id="ch-24", name="Faculty TV", country="Kenya", group="Education",
            source_url="https://stream-server9-jupiter.muxlive.com/hls/facultytv/index.m3u8"),
    Channel(id="ch-25", name="Fresh", country="Nigeria", group="Entertainment",
            source_url="https://origin3.afxp.telemedia.co.za/PremiumFree/freshtv/playlist.m3u8"),
    Channel(id="ch-26", name="Galaxy TV", country="Nigeria", group="News",
            source_url="https://5d846bfda90fc.streamlock.net:1935/live/galaxytv/playlist.m3u8"),
    Channel(id="ch-27", name="Géopolis TV", country="DR. Congo", group="News",
            source_url="https://tnt-television.com/Geopolis_tv/index.m3u8"),
    Channel(id="ch-28", name="Glory Christ Channel", country="Nigeria", group="Religious",
            source_url="https://stream.it-innov.com/gcc/index.m3u8"),
    Channel(id="ch-29", name="His Grace TV", country="Nigeria", group="Religious",
            source_url="https://goliveafrica.media:9998/live/6593c35f9c090/index.m3u8"),
    Channel(id="ch-30", name="Huda TV", country="Egypt", group="Religious",
            source_url="https://cdn.bestream.io:19360/elfaro1/elfaro1.m3u8"),
    Channel(id="ch-31", name="Islam TV Sénégal", country="Senegal", group="Religious",
            source_url="https://tv.imediasn.com/hls/live.m3u8"),
    Channel(id="ch-32", name="Kaback TV", country="Senegal", group="General",
            source_url="https://guineetvdirect.online:3842/live/kabacktvlive.m3u8"),
    Channel(id="ch-33", name="KK TV Angola", country="Angola", group="Religious",
            source_url="https://w1.manasat.com/ktv-angola/smil:ktv-angola.smil/playlist.m3u8"),
    Channel(id="ch-34", name="LBFD RTV", country="Liberia", group="Religious",
            source_url="https://tnt-television.com/LBFD_RTV/index.m3u8"),
    Channel(id="ch-35", name="Libya Al Wataniya", country="Libya", group="General",
            source_url="https://cdn-globecast.akamaized.net/live/eds/libya_al_watanya/hls_roku/index.m3u8"),
    Channel(id="ch-36", name="Life TV", country="Ivory Coast", group="General",
            source_url="https://strhls.streamakaci.tv/str_lifetv_lifetv/str_lifetv_multi/playlist.m3u8"),
    Channel(id="ch-37", name="Louga TV", country="Senegal", group="General",
            source_url="https://stream.sen-gt.com/Mbacke/myStream/playlist.m3u8"),
    Channel(id="ch-38", name="Medi 1 TV Afrique", country="Morocco", group="News",
            source_url="https://streaming1.medi1tv.com/live/smil:medi1fr.smil/playlist.m3u8"),
    Channel(id="ch-39", name="Metanoia TV", country="Kenya", group="Religious",
            source_url="https://tnt-television.com/METANOIA-STREAM1/index.m3u8"),
    Channel(id="ch-40", name="Mishapi Voice TV", country="DR. Congo", group="Religious",
            source_url="https://tnt-television.com/MISHAPI-STREAM1/index.m3u8"),
    Channel(id="ch-41", name="NTV", country="Namibia", group="Kids",
            source_url="https://s-pl-01.mediatool.tv/playout/ntv-abr/index.m3u8"),
    Channel(id="ch-42", name="Numerica TV", country="DR. Congo", group="General",
            source_url="https://tnt-television.com/NUMERICA/index.m3u8"),
    Channel(id="ch-43", name="NW Economie", country="Cameroon", group="Business",
            source_url="https://hls.newworldtv.com/nw-economie/video/live.m3u8"),
    Channel(id="ch-44", name="NW Info 2 EN", country="Cameroon", group="News",
            source_url="https://hls.newworldtv.com/nw-info-2/video/live.m3u8"),
    Channel(id="ch-45", name="NW Info FR", country="Cameroon", group="News",
            source_url="https://hls.newworldtv.com/nw-info/video/live.m3u8"),
    Channel(id="ch-46", name="NW Magazine", country="Cameroon", group="Entertainment",
            source_url="https://hls.newworldtv.com/nw-magazine/video/live.m3u8"),
    Channel(id="ch-47", name="ORTB TV", country="Benin", group="General",
            source_url="https://strhls.streamakaci.tv/ortb/ortb1-multi/playlist.m3u8"),
    Channel(id="ch-48", name="Power TV", country="Zambia", group="Religious",
            source_url="https://stream.it-innov.com/powertv/index.fmp4.m3u8"),
    Channel(id="ch-49", name="QTV Gambia", country="Gambia", group="General",
            source_url="https://player.qtv.gm/hls/live.stream.m3u8"),
    Channel(id="ch-50", name="Qwest TV", country="Pan-African", group="Music",
            source_url="https://qwestjazz-rakuten.amagi.tv/hls/amagi_hls_data_rakutenAA-qwestjazz-rakuten/CDN/master.m3u8"),
    Channel(id="ch-51", name="RT JVA", country="Liberia", group="Religious",
            source_url="https://cdn140m.panaccess.com/HLS/RTVJA/index.m3u8"),
    Channel(id="ch-52", name="RTB", country="Burkina Faso", group="News",
            source_url="https://edge12.vedge.infomaniak.com/livecast/ik:rtblive1_8/manifest.m3u8"),
    Channel(id="ch-53", name="RTNC", country="DR. Congo", group="General",
            source_url="https://tnt-television.com/rtnc_HD/index.m3u8"),
    Channel(id="ch-54", name="SenJeunes TV", country="Senegal", group="General",
            source_url="https://stream.sen-gt.com/senjeunestv/myStream/playlist.m3u8"),
    Channel(id="ch-55", name="SNTV Daljir", country="Somalia", group="General",
            source_url="https://ap02.iqplay.tv:8082/iqb8002/s2tve/playlist.m3u8"),
    Channel(id="ch-56", name="SOS Docteur TV", country="Ivory Coast", group="Lifestyle",
            source_url="https://wmoy82n4y2a7-hls-live.5centscdn.com/sostv/live.stream/playlist.m3u8"),
    Channel(id="ch-57", name="Soweto TV", country="South Africa", group="Family",
            source_url="https://cdn.freevisiontv.co.za/sttv/smil:soweto.stream.smil/playlist.m3u8"),
    Channel(id="ch-58", name="Somali National TV", country="Somalia", group="General",
            source_url="https://ap02.iqplay.tv:8082/iqb8002/s4ne/playlist.m3u8"),
    Channel(id="ch-59", name="Sudan TV", country="Sudan", group="General",
            source_url="https://tgn.bozztv.com/trn03/gin-sudantv/index.m3u8"),
    Channel(id="ch-60", name="Superscreen TV", country="Nigeria", group="Family",
            source_url="https://video1.getstreamhosting.com:1936/8398/8398/playlist.m3u8"),
    Channel(id="ch-61", name="Tele Tchad", country="Chad", group="General",
            source_url="https://strhlslb01.streamakaci.tv/str_tchad_tchad/str_tchad_multi/playlist.m3u8"),
    Channel(id="ch-62", name="Tempo Afric TV", country="Ivory Coast", group="News",
            source_url="https://streamspace.live/hls/tempoafrictv/livestream.m3u8"),
    Channel(id="ch-63", name="TR24", country="Tanzania", group="Entertainment",
            source_url="https://stream.it-innov.com/tr24/index.m3u8"),
    Channel(id="ch-64", name="True African", country="Nigeria", group="Entertainment",
            source_url="https://origin3.afxp.telemedia.co.za/PremiumFree/trueafrican/playlist.m3u8"),
    Channel(id="ch-65", name="TV BRICS Africa", country="South Africa", group="General",
            source_url="https://cdn.freevisiontv.co.za/sttv/smil:brics.stream.smil/playlist.m3u8"),
    Channel(id="ch-66", name="TV Zimbo", country="Zimbabwe", group="General",
            source_url="https://sgn-cdn-video.vods2africa.com/Tv-Zimbo/index.fmp4.m3u8"),
    Channel(id="ch-67", name="Wap TV", country="Nigeria", group="Entertainment",
            source_url="https://newproxy3.vidivu.tv/waptv/index.m3u8"),
    Channel(id="ch-68", name="Wazobia Max TV Nigeria", country="Nigeria", group="Entertainment",
            source_url="https://wazobia.live:8333/channel/wmax.m3u8"),
    Channel(id="ch-69", name="Yeglé TV", country="Senegal", group="Culture",
            source_url="https://endour.net/hls/Yegle-tv/index.m3u8"),
]


def load_channels_file(path: str) -> List[Channel]:
    """Load a JSON array of channel objects."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of channels")

    return [Channel.model_validate(item) for item in data]


async def initialize_channels(registry: ChannelRegistry, channels: Iterable[Channel]) -> int:
    """
    Register every channel in the registry.

    New channels start online with no failures and no check history; channels
    that already exist keep their health and only have metadata refreshed.
    """
    logger.info("Initializing channels in registry...")
    count = 0
    for channel in channels:
        await registry.register_channel(channel)
        count += 1
    logger.info(f"Initialized {count} channels")
    return count
